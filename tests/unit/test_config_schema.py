"""Unit tests for configuration schema validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from smartpos_realtime.config.schema import (
    ClientConfig,
    LoggingConfig,
    RealtimeConfig,
    Topic,
)
from smartpos_realtime.config.schema_export import (
    SCHEMA_VERSION,
    export_json_schema,
    export_json_schema_string,
)


class TestRealtimeConfig:
    """Tests for RealtimeConfig model."""

    def test_defaults(self) -> None:
        config = RealtimeConfig()
        assert config.socket_url is None
        assert config.stream_url is None
        assert config.topics == []
        assert config.max_backoff_ms == 15000
        assert config.fallback_grace_ms == 1000
        assert config.token_env is None

    def test_topics_normalized(self) -> None:
        config = RealtimeConfig(topics=[" inventory", "sales", "inventory "])
        assert config.topics == ["inventory", "sales"]

    def test_topic_enum_values_accepted(self) -> None:
        config = RealtimeConfig(topics=[Topic.WARRANTY.value])
        assert config.topics == ["warranty"]

    def test_unknown_topic_accepted(self) -> None:
        config = RealtimeConfig(topics=["loyalty"])
        assert config.topics == ["loyalty"]

    def test_empty_topic_fails(self) -> None:
        with pytest.raises(ValidationError):
            RealtimeConfig(topics=["sales", "  "])

    @pytest.mark.parametrize("value", [0, -1])
    def test_invalid_max_backoff(self, value: int) -> None:
        with pytest.raises(ValidationError):
            RealtimeConfig(max_backoff_ms=value)

    def test_negative_grace_fails(self) -> None:
        with pytest.raises(ValidationError):
            RealtimeConfig(fallback_grace_ms=-5)

    def test_zero_grace_allowed(self) -> None:
        assert RealtimeConfig(fallback_grace_ms=0).fallback_grace_ms == 0

    def test_socket_url_scheme(self) -> None:
        assert RealtimeConfig(socket_url="wss://pos.test/ws").socket_url == "wss://pos.test/ws"
        with pytest.raises(ValidationError):
            RealtimeConfig(socket_url="https://pos.test/ws")

    @pytest.mark.parametrize("field", ["stream_url", "api_base_url"])
    def test_http_url_scheme(self, field: str) -> None:
        RealtimeConfig(**{field: "https://pos.test"})
        with pytest.raises(ValidationError):
            RealtimeConfig(**{field: "wss://pos.test"})

    def test_unknown_field_fails(self) -> None:
        with pytest.raises(ValidationError):
            RealtimeConfig(polling_interval_ms=5000)  # type: ignore[call-arg]


class TestLoggingConfig:
    """Tests for LoggingConfig model."""

    def test_level_uppercased(self) -> None:
        assert LoggingConfig(level="debug").level == "DEBUG"  # type: ignore[arg-type]

    def test_invalid_level(self) -> None:
        with pytest.raises(ValidationError):
            LoggingConfig(level="TRACE")  # type: ignore[arg-type]

    def test_invalid_format(self) -> None:
        with pytest.raises(ValidationError):
            LoggingConfig(format="xml")  # type: ignore[arg-type]


class TestClientConfig:
    """Tests for the root configuration."""

    def test_defaults(self) -> None:
        config = ClientConfig()
        assert config.name == "smartpos-realtime"
        assert config.logging.level == "INFO"

    def test_empty_name_fails(self) -> None:
        with pytest.raises(ValidationError):
            ClientConfig(name="")

    def test_nested_validation(self) -> None:
        config = ClientConfig.model_validate(
            {"name": "till-3", "realtime": {"topics": ["sales"], "max_backoff_ms": 8000}}
        )
        assert config.realtime.topics == ["sales"]
        assert config.realtime.max_backoff_ms == 8000


class TestSchemaExport:
    """Tests for JSON Schema export."""

    def test_includes_metadata(self) -> None:
        schema = export_json_schema()
        assert "json-schema.org" in schema["$schema"]
        assert "SmartPOS" in schema["title"]
        assert schema["x-smartpos-realtime"]["version"] == SCHEMA_VERSION

    def test_without_metadata(self) -> None:
        schema = export_json_schema(include_metadata=False)
        assert "$schema" not in schema
        assert "x-smartpos-realtime" not in schema

    def test_custom_version(self) -> None:
        assert export_json_schema(version="2.0.0")["x-smartpos-realtime"]["version"] == "2.0.0"

    def test_describes_realtime_section(self) -> None:
        schema_str = export_json_schema_string()
        assert "max_backoff_ms" in schema_str
        assert "fallback_grace_ms" in schema_str

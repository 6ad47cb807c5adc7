"""Unit tests for realtime endpoint resolution."""

from __future__ import annotations

import pytest

from smartpos_realtime.config.endpoints import (
    API_BASE_ENV,
    DEFAULT_SOCKET_URL,
    EndpointSource,
    derive_stream_url,
    resolve_endpoints,
    socket_url_from_api_base,
    with_token,
)
from smartpos_realtime.config.schema import RealtimeConfig


class TestSocketUrlFromApiBase:
    """Tests for deriving the WebSocket URL from the REST base."""

    @pytest.mark.parametrize(
        ("api_base", "expected"),
        [
            ("https://api.pos.test", "wss://api.pos.test/api/v1/ws"),
            ("http://localhost:8787", "ws://localhost:8787/api/v1/ws"),
            ("https://api.pos.test/", "wss://api.pos.test/api/v1/ws"),
            ("https://api.pos.test/api/v1", "wss://api.pos.test/api/v1/ws"),
            ("https://api.pos.test/api/v1/", "wss://api.pos.test/api/v1/ws"),
        ],
    )
    def test_derivation(self, api_base: str, expected: str) -> None:
        assert socket_url_from_api_base(api_base) == expected


class TestDeriveStreamUrl:
    """Tests for deriving the SSE URL from the WebSocket URL."""

    @pytest.mark.parametrize(
        ("socket_url", "expected"),
        [
            ("wss://pos.test/api/v1/ws", "https://pos.test/realtime"),
            ("ws://localhost:8787/api/v1/ws", "http://localhost:8787/realtime"),
            ("wss://pos.test/realtime", "https://pos.test/realtime"),
            ("wss://pos.test/events/sse", "https://pos.test/events/sse"),
        ],
    )
    def test_derivation(self, socket_url: str, expected: str) -> None:
        assert derive_stream_url(socket_url) == expected

    def test_query_is_kept(self) -> None:
        assert derive_stream_url("wss://pos.test/ws?store=1") == "https://pos.test/realtime?store=1"


class TestWithToken:
    """Tests for the token query parameter."""

    def test_appends_token(self) -> None:
        assert with_token("wss://pos.test/ws", "abc") == "wss://pos.test/ws?t=abc"

    def test_keeps_existing_query(self) -> None:
        assert with_token("wss://pos.test/ws?store=1", "abc") == "wss://pos.test/ws?store=1&t=abc"

    def test_replaces_existing_token(self) -> None:
        assert with_token("wss://pos.test/ws?t=old", "new") == "wss://pos.test/ws?t=new"

    def test_token_is_encoded(self) -> None:
        url = with_token("wss://pos.test/ws", "a b/c=d&e")
        assert url == "wss://pos.test/ws?t=a%20b%2Fc%3Dd%26e"

    @pytest.mark.parametrize("token", [None, ""])
    def test_missing_token_leaves_url(self, token: str | None) -> None:
        assert with_token("wss://pos.test/ws", token) == "wss://pos.test/ws"


class TestResolveEndpoints:
    """Tests for resolve_endpoints priority order."""

    def test_explicit_urls_win(self) -> None:
        config = RealtimeConfig(
            socket_url="wss://ws.pos.test/live",
            stream_url="https://sse.pos.test/events",
            api_base_url="https://api.pos.test",
        )
        endpoints = resolve_endpoints(config, environ={API_BASE_ENV: "https://env.pos.test"})

        assert endpoints.socket_url == "wss://ws.pos.test/live"
        assert endpoints.stream_url == "https://sse.pos.test/events"
        assert endpoints.socket_source == EndpointSource.EXPLICIT
        assert endpoints.stream_source == EndpointSource.EXPLICIT

    def test_config_api_base_before_environment(self) -> None:
        config = RealtimeConfig(api_base_url="https://api.pos.test")
        endpoints = resolve_endpoints(config, environ={API_BASE_ENV: "https://env.pos.test"})

        assert endpoints.socket_url == "wss://api.pos.test/api/v1/ws"
        assert endpoints.socket_source == EndpointSource.API_BASE

    def test_environment_api_base(self) -> None:
        endpoints = resolve_endpoints(
            RealtimeConfig(),
            environ={API_BASE_ENV: "http://localhost:8787"},
        )

        assert endpoints.socket_url == "ws://localhost:8787/api/v1/ws"
        assert endpoints.stream_url == "http://localhost:8787/realtime"
        assert endpoints.stream_source == EndpointSource.SOCKET

    def test_default_endpoint(self) -> None:
        endpoints = resolve_endpoints(RealtimeConfig(), environ={})

        assert endpoints.socket_url == DEFAULT_SOCKET_URL
        assert endpoints.stream_url.startswith("https://")
        assert endpoints.stream_url.endswith("/realtime")
        assert endpoints.socket_source == EndpointSource.DEFAULT
        assert endpoints.stream_source == EndpointSource.DEFAULT

    def test_stream_derived_from_explicit_socket(self) -> None:
        config = RealtimeConfig(socket_url="wss://pos.test/api/v1/ws")
        endpoints = resolve_endpoints(config, environ={})

        assert endpoints.stream_url == "https://pos.test/realtime"
        assert endpoints.stream_source == EndpointSource.SOCKET

    def test_reads_os_environ_by_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(API_BASE_ENV, "https://from-env.pos.test")

        endpoints = resolve_endpoints(RealtimeConfig())

        assert endpoints.socket_url == "wss://from-env.pos.test/api/v1/ws"

"""Configuration schema for the SmartPOS realtime client.

Uses Pydantic v2 for validation, serialization, and documentation.
Configuration is loaded from YAML files and validated against these models.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# =============================================================================
# ENUMERATIONS
# =============================================================================


class Topic(str, Enum):
    """Topics published by the SmartPOS backend.

    Filtering compares plain strings, so topics outside this set are
    still accepted in configuration.
    """

    SALES = "sales"
    INVENTORY = "inventory"
    SYSTEM = "system"
    WARRANTY = "warranty"


# =============================================================================
# REALTIME CONFIGURATION
# =============================================================================

BACKOFF_FLOOR_MS = 1000


class RealtimeConfig(BaseModel):
    """Realtime channel configuration.

    URLs left unset are derived at client construction (see
    ``smartpos_realtime.config.endpoints``).
    """

    model_config = ConfigDict(extra="forbid")

    socket_url: str | None = Field(
        default=None,
        description="Explicit WebSocket URL (ws:// or wss://)",
    )
    stream_url: str | None = Field(
        default=None,
        description="Explicit Server-Sent Events URL (http:// or https://)",
    )
    api_base_url: str | None = Field(
        default=None,
        description="REST API base URL used to derive the WebSocket URL",
    )
    topics: list[str] = Field(
        default_factory=list,
        description="Topics to deliver; empty delivers every event",
    )
    max_backoff_ms: int = Field(
        default=15000,
        gt=0,
        description="Ceiling for the reconnect delay in milliseconds",
    )
    fallback_grace_ms: int = Field(
        default=1000,
        ge=0,
        description="Time the WebSocket gets to open before the SSE fallback starts",
    )
    open_timeout_s: float = Field(
        default=10.0,
        gt=0.0,
        description="Timeout for opening either transport",
    )
    ping_interval_s: float | None = Field(
        default=20.0,
        description="WebSocket keepalive ping interval (None disables pings)",
    )
    token_env: str | None = Field(
        default=None,
        description="Environment variable holding the bearer token",
    )

    @field_validator("topics")
    @classmethod
    def normalize_topics(cls, v: list[str]) -> list[str]:
        """Strip whitespace and drop duplicates while keeping order."""
        seen: list[str] = []
        for topic in v:
            topic = topic.strip()
            if not topic:
                raise ValueError("Topic names must not be empty")
            if topic not in seen:
                seen.append(topic)
        return seen

    @field_validator("socket_url")
    @classmethod
    def validate_socket_scheme(cls, v: str | None) -> str | None:
        if v is not None and not v.startswith(("ws://", "wss://")):
            raise ValueError("socket_url must use ws:// or wss://")
        return v

    @field_validator("stream_url", "api_base_url")
    @classmethod
    def validate_http_scheme(cls, v: str | None) -> str | None:
        if v is not None and not v.startswith(("http://", "https://")):
            raise ValueError("URL must use http:// or https://")
        return v


class LoggingConfig(BaseModel):
    """Logging output configuration."""

    model_config = ConfigDict(extra="forbid")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["console", "json"] = "console"

    @field_validator("level", mode="before")
    @classmethod
    def uppercase_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v


# =============================================================================
# ROOT CONFIGURATION
# =============================================================================


class ClientConfig(BaseModel):
    """Root configuration model for the realtime client."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(
        default="smartpos-realtime",
        min_length=1,
        max_length=64,
        description="Client instance name (used in log context)",
    )
    realtime: RealtimeConfig = Field(default_factory=RealtimeConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

"""Connection state and status tracking for the realtime client."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import Enum


class ConnectionState(str, Enum):
    """Connection state reported through the status callback.

    Values match the status strings shown by the POS connection indicator.
    """

    CONNECTING = "connecting"
    CONNECTED_SOCKET = "connected"
    CONNECTED_STREAM = "sse"
    DISCONNECTED = "disconnected"
    RECONNECTING = "reconnecting"

    @property
    def is_connected(self) -> bool:
        return self in (ConnectionState.CONNECTED_SOCKET, ConnectionState.CONNECTED_STREAM)


class TransportKind(str, Enum):
    """Transport types, in order of preference."""

    SOCKET = "websocket"
    STREAM = "sse"

    @property
    def connected_state(self) -> ConnectionState:
        if self is TransportKind.SOCKET:
            return ConnectionState.CONNECTED_SOCKET
        return ConnectionState.CONNECTED_STREAM


@dataclass
class ConnectionStatus:
    """Status snapshot for a realtime connection."""

    state: ConnectionState = ConnectionState.DISCONNECTED
    transport: TransportKind | None = None
    connected_since: datetime | None = None
    last_message_at: datetime | None = None
    last_error: str | None = None
    latency_ms: float | None = None
    reconnect_attempts: int = 0
    events_received: int = 0
    events_delivered: int = 0
    frames_dropped: int = 0

    @property
    def is_connected(self) -> bool:
        return self.state.is_connected

    def record_connected(self, transport: TransportKind) -> None:
        """Record a transport that just opened."""
        self.transport = transport
        self.connected_since = datetime.now(UTC)
        self.last_error = None

    def record_disconnected(self, error: str | None = None) -> None:
        """Record the loss of the active transport."""
        self.transport = None
        self.connected_since = None
        if error:
            self.last_error = error

    def record_frame(self) -> None:
        self.last_message_at = datetime.now(UTC)
        self.events_received += 1

    def record_heartbeat(self, sent_at: datetime) -> None:
        """Update latency from a heartbeat timestamp set by the server."""
        if sent_at.tzinfo is None:
            sent_at = sent_at.replace(tzinfo=UTC)
        self.latency_ms = (datetime.now(UTC) - sent_at).total_seconds() * 1000

    def snapshot(self) -> ConnectionStatus:
        return replace(self)

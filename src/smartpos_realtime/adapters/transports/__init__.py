"""Realtime transport adapters.

Provides the WebSocket transport (preferred) and the Server-Sent Events
fallback, both receive-only.
"""

from smartpos_realtime.adapters.transports.base import (
    ExponentialBackoff,
    TransportError,
    TransportPort,
)
from smartpos_realtime.adapters.transports.sse import SSETransport
from smartpos_realtime.adapters.transports.websocket import WebSocketTransport

__all__ = [
    "ExponentialBackoff",
    "SSETransport",
    "TransportError",
    "TransportPort",
    "WebSocketTransport",
]

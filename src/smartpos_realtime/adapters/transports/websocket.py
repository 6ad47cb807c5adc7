"""WebSocket transport.

The preferred, full-duplex realtime channel. The client only reads from it;
keepalive pings are handled by the websockets library.
"""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

import structlog
from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from smartpos_realtime.adapters.transports.base import TransportError
from smartpos_realtime.domain.connection import TransportKind

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from websockets.asyncio.client import ClientConnection

    from smartpos_realtime.config.schema import RealtimeConfig

logger = structlog.get_logger(__name__)


class WebSocketTransport:
    """Receive-only WebSocket connection."""

    def __init__(
        self,
        url: str,
        *,
        open_timeout_s: float = 10.0,
        ping_interval_s: float | None = 20.0,
    ) -> None:
        self._url = url
        self._open_timeout_s = open_timeout_s
        self._ping_interval_s = ping_interval_s
        self._connection: ClientConnection | None = None

    @property
    def kind(self) -> TransportKind:
        return TransportKind.SOCKET

    async def open(self) -> None:
        try:
            self._connection = await connect(
                self._url,
                open_timeout=self._open_timeout_s,
                ping_interval=self._ping_interval_s,
            )
        except (OSError, TimeoutError, ValueError, WebSocketException) as e:
            raise TransportError(self.kind, str(e) or type(e).__name__) from e

    async def messages(self) -> AsyncIterator[str | bytes]:
        if self._connection is None:
            raise TransportError(self.kind, "transport is not open")

        try:
            async for frame in self._connection:
                yield frame
        except ConnectionClosed as e:
            raise TransportError(self.kind, f"connection closed: {e}") from e

    async def close(self) -> None:
        connection, self._connection = self._connection, None
        if connection is None:
            return
        with contextlib.suppress(OSError, WebSocketException):
            await connection.close()
        logger.debug("WebSocket closed")


def create_socket_transport(url: str, config: RealtimeConfig) -> WebSocketTransport:
    """Default factory for the WebSocket transport."""
    return WebSocketTransport(
        url,
        open_timeout_s=config.open_timeout_s,
        ping_interval_s=config.ping_interval_s,
    )

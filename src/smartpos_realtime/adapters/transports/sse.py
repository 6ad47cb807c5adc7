"""Server-Sent Events transport.

The fallback, server-push channel. Uses an httpx streaming GET and decodes
the ``text/event-stream`` line protocol. Only unnamed (``message``) events
are yielded, the same events a browser ``EventSource.onmessage`` handler
would see.
"""

from __future__ import annotations

import contextlib
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx
import structlog

from smartpos_realtime.adapters.transports.base import TransportError
from smartpos_realtime.domain.connection import TransportKind

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from smartpos_realtime.config.schema import RealtimeConfig

logger = structlog.get_logger(__name__)

EVENT_STREAM_CONTENT_TYPE = "text/event-stream"


@dataclass
class ServerSentEvent:
    """One dispatched SSE event."""

    data: str
    event: str = "message"
    id: str | None = None
    retry_ms: int | None = None


class SSEDecoder:
    """Incremental decoder for the ``text/event-stream`` line format."""

    def __init__(self) -> None:
        self._data: list[str] = []
        self._event = ""
        self._last_event_id: str | None = None
        self._retry_ms: int | None = None

    @property
    def last_event_id(self) -> str | None:
        return self._last_event_id

    def decode(self, line: str) -> ServerSentEvent | None:
        """Feed one line (without terminator).

        Returns:
            The dispatched event when ``line`` is blank and data is pending
        """
        if not line:
            return self._dispatch()

        if line.startswith(":"):
            return None

        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if name == "data":
            self._data.append(value)
        elif name == "event":
            self._event = value
        elif name == "id":
            if "\0" not in value:
                self._last_event_id = value
        elif name == "retry":
            if value.isdigit():
                self._retry_ms = int(value)
        return None

    def _dispatch(self) -> ServerSentEvent | None:
        if not self._data:
            self._event = ""
            return None

        sse = ServerSentEvent(
            data="\n".join(self._data),
            event=self._event or "message",
            id=self._last_event_id,
            retry_ms=self._retry_ms,
        )
        self._data = []
        self._event = ""
        return sse


class SSETransport:
    """Receive-only Server-Sent Events connection."""

    def __init__(
        self,
        url: str,
        *,
        open_timeout_s: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._open_timeout_s = open_timeout_s
        self._client = client
        self._owns_client = client is None
        self._response: httpx.Response | None = None

    @property
    def kind(self) -> TransportKind:
        return TransportKind.STREAM

    async def open(self) -> None:
        if self._client is None:
            # Reads block until the server pushes, so only connecting is bounded
            timeout = httpx.Timeout(self._open_timeout_s, read=None)
            self._client = httpx.AsyncClient(timeout=timeout)

        try:
            request = self._client.build_request(
                "GET",
                self._url,
                headers={
                    "Accept": EVENT_STREAM_CONTENT_TYPE,
                    "Cache-Control": "no-cache",
                },
            )
            self._response = await self._client.send(request, stream=True)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            raise TransportError(self.kind, str(e) or type(e).__name__) from e

        response = self._response
        if response.status_code != httpx.codes.OK:
            await self.close()
            raise TransportError(self.kind, f"unexpected status {response.status_code}")

        content_type = response.headers.get("content-type", "")
        if not content_type.startswith(EVENT_STREAM_CONTENT_TYPE):
            await self.close()
            raise TransportError(self.kind, f"unexpected content type {content_type!r}")

    async def messages(self) -> AsyncIterator[str | bytes]:
        if self._response is None:
            raise TransportError(self.kind, "transport is not open")

        decoder = SSEDecoder()
        try:
            async for line in self._response.aiter_lines():
                sse = decoder.decode(line)
                if sse is not None and sse.event == "message":
                    yield sse.data
        except httpx.HTTPError as e:
            raise TransportError(self.kind, str(e) or type(e).__name__) from e

        # Trailing event without a final blank line is discarded, as in browsers
        logger.debug("SSE stream ended", last_event_id=decoder.last_event_id)

    async def close(self) -> None:
        response, self._response = self._response, None
        if response is not None:
            with contextlib.suppress(httpx.HTTPError):
                await response.aclose()

        if self._owns_client and self._client is not None:
            client, self._client = self._client, None
            await client.aclose()


def create_stream_transport(url: str, config: RealtimeConfig) -> SSETransport:
    """Default factory for the SSE transport."""
    return SSETransport(url, open_timeout_s=config.open_timeout_s)

"""Realtime connection manager.

Keeps one logical event feed open to the SmartPOS backend:

- prefers the WebSocket transport, starting the SSE fallback when the
  socket has not opened within the grace period
- reconnects forever with exponential backoff (reset on every success)
- parses frames, drops malformed ones and filters by topic

All failures are reported through the status callback only; nothing is
raised out of start() or stop().
"""

from __future__ import annotations

import asyncio
import contextlib
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog

from smartpos_realtime.adapters.transports.base import ExponentialBackoff
from smartpos_realtime.adapters.transports.sse import create_stream_transport
from smartpos_realtime.adapters.transports.websocket import create_socket_transport
from smartpos_realtime.config.endpoints import resolve_endpoints, with_token
from smartpos_realtime.config.schema import BACKOFF_FLOOR_MS
from smartpos_realtime.domain.connection import ConnectionState, ConnectionStatus, TransportKind
from smartpos_realtime.domain.events import TopicFilter, parse_envelope
from smartpos_realtime.security.tokens import mask_url_token, resolve_token

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from smartpos_realtime.adapters.transports.base import TransportFactory, TransportPort
    from smartpos_realtime.config.endpoints import Endpoints
    from smartpos_realtime.config.schema import RealtimeConfig
    from smartpos_realtime.domain.events import EventEnvelope
    from smartpos_realtime.security.tokens import TokenProvider

logger = structlog.get_logger(__name__)

HEARTBEAT_EVENT = "heartbeat"


class RealtimeConnectionManager:
    """Maintains a live, topic-filtered event feed over WebSocket or SSE.

    Example:
        manager = RealtimeConnectionManager(
            RealtimeConfig(topics=["inventory"]),
            on_event=lambda event: refresh_stock(event.data),
            on_status=indicator.update,
        )
        await manager.start()
        ...
        await manager.stop()
    """

    def __init__(
        self,
        config: RealtimeConfig,
        on_event: Callable[[EventEnvelope], None],
        on_status: Callable[[ConnectionState], None] | None = None,
        token_provider: TokenProvider | None = None,
        *,
        socket_factory: TransportFactory = create_socket_transport,
        stream_factory: TransportFactory = create_stream_transport,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            config: Realtime configuration
            on_event: Called for every accepted event envelope
            on_status: Called on every connection state transition
            token_provider: Returns the bearer token sent as the ``t`` query parameter
            socket_factory: Builds the WebSocket transport for a URL
            stream_factory: Builds the SSE transport for a URL
            sleep: Coroutine used for the backoff wait
            environ: Environment used to resolve endpoints (defaults to os.environ)
        """
        self._config = config
        self._on_event = on_event
        self._on_status = on_status
        self._token_provider = token_provider
        self._factories: dict[TransportKind, TransportFactory] = {
            TransportKind.SOCKET: socket_factory,
            TransportKind.STREAM: stream_factory,
        }
        self._sleep = sleep

        self._endpoints = resolve_endpoints(config, environ)
        self._filter = TopicFilter(config.topics)
        self._backoff = ExponentialBackoff(
            base_delay_ms=BACKOFF_FLOOR_MS,
            max_delay_ms=config.max_backoff_ms,
        )

        self._status = ConnectionStatus()
        self._state: ConnectionState | None = None
        self._stopped = True
        self._runner: asyncio.Task[None] | None = None
        self._transport: TransportPort | None = None

    @property
    def endpoints(self) -> Endpoints:
        """Resolved, token-free transport URLs."""
        return self._endpoints

    @property
    def state(self) -> ConnectionState | None:
        """Current state, or None if the manager was never started."""
        return self._state

    @property
    def is_running(self) -> bool:
        return not self._stopped

    def status(self) -> ConnectionStatus:
        """Return a snapshot of the connection status."""
        return self._status.snapshot()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Start the connection loop. Does nothing if already running."""
        if self._runner is not None and not self._runner.done():
            return

        self._stopped = False
        self._backoff.reset()
        logger.info(
            "Starting realtime connection",
            socket_url=self._endpoints.socket_url,
            stream_url=self._endpoints.stream_url,
            topics=sorted(self._filter.topics) or "all",
        )
        self._set_state(ConnectionState.CONNECTING)
        self._runner = asyncio.create_task(self._run(), name="realtime-connection")

    async def stop(self) -> None:
        """Stop reconnecting and close the active transport.

        No status or event callbacks are invoked after this returns.
        """
        if self._stopped and self._runner is None:
            return

        self._stopped = True
        self._state = ConnectionState.DISCONNECTED
        self._status.state = ConnectionState.DISCONNECTED

        runner, self._runner = self._runner, None
        if runner is not None and runner is not asyncio.current_task():
            runner.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await runner

        transport, self._transport = self._transport, None
        if transport is not None:
            await self._close_quietly(transport)
        self._status.record_disconnected()

        logger.info("Realtime connection stopped")

    # -------------------------------------------------------------------------
    # Connection loop
    # -------------------------------------------------------------------------

    async def _run(self) -> None:
        while not self._stopped:
            self._set_state(ConnectionState.CONNECTING)

            transport = await self._establish()
            if transport is not None:
                await self._serve(transport)

            if self._stopped:
                return

            await self._wait_before_retry()

    async def _establish(self) -> TransportPort | None:
        """Open the WebSocket, racing it against SSE after the grace period.

        Returns:
            The transport that opened first, or None if both failed
        """
        socket_task = asyncio.create_task(self._open(TransportKind.SOCKET))
        tasks = [socket_task]
        winner: TransportPort | None = None

        try:
            grace_s = self._config.fallback_grace_ms / 1000
            await asyncio.wait({socket_task}, timeout=grace_s)
            if socket_task.done():
                winner = self._take_result(socket_task)
                if winner is not None:
                    return winner
            else:
                logger.info(
                    "WebSocket not open after grace period, trying SSE",
                    grace_ms=self._config.fallback_grace_ms,
                )

            tasks.append(asyncio.create_task(self._open(TransportKind.STREAM)))
            pending = {task for task in tasks if not task.done()}

            while pending and winner is None:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                # Prefer the socket when both opened in the same step
                for task in sorted(done, key=tasks.index):
                    if winner is None:
                        winner = self._take_result(task)
            return winner
        finally:
            # Owned by the manager from here on, so stop() closes it if the
            # cleanup below is cancelled
            if winner is not None:
                self._transport = winner
            for task in tasks:
                if task.done():
                    continue
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            for task in tasks:
                await self._discard_loser(task, winner)

    def _take_result(self, task: asyncio.Task[TransportPort]) -> TransportPort | None:
        if task.cancelled():
            return None
        error = task.exception()
        if error is not None:
            self._status.last_error = str(error)
            logger.warning("Transport failed to open", error=str(error))
            return None
        return task.result()

    async def _discard_loser(
        self,
        task: asyncio.Task[TransportPort],
        winner: TransportPort | None,
    ) -> None:
        if task.cancelled() or task.exception() is not None:
            return
        transport = task.result()
        if transport is not winner:
            logger.debug("Closing redundant transport", transport=transport.kind.value)
            await self._close_quietly(transport)

    async def _open(self, kind: TransportKind) -> TransportPort:
        """Build and open one transport.

        Token lookup and URL errors count as a failed attempt.
        """
        base_url = (
            self._endpoints.socket_url
            if kind is TransportKind.SOCKET
            else self._endpoints.stream_url
        )
        token = await resolve_token(self._token_provider)
        url = with_token(base_url, token)

        logger.debug("Opening transport", transport=kind.value, url=mask_url_token(url))
        transport = self._factories[kind](url, self._config)
        try:
            await transport.open()
        except BaseException:
            await self._close_quietly(transport)
            raise
        return transport

    async def _serve(self, transport: TransportPort) -> None:
        """Deliver frames from an open transport until it ends."""
        self._transport = transport
        self._backoff.reset()
        self._status.record_connected(transport.kind)
        self._set_state(transport.kind.connected_state)
        logger.info("Realtime connected", transport=transport.kind.value)

        error: str | None = None
        try:
            async for frame in transport.messages():
                if self._stopped:
                    return
                self._handle_frame(frame)
        except Exception as e:
            error = str(e)
            logger.warning("Realtime transport failed", transport=transport.kind.value, error=error)
        finally:
            if self._transport is transport:
                self._transport = None
            await self._close_quietly(transport)

        if not self._stopped:
            self._status.record_disconnected(error)
            logger.info("Realtime disconnected", transport=transport.kind.value)

    async def _wait_before_retry(self) -> None:
        self._set_state(ConnectionState.RECONNECTING)

        delay_ms = self._backoff.next_delay_ms()
        self._status.reconnect_attempts += 1
        logger.info(
            "Reconnecting after delay",
            delay_ms=delay_ms,
            attempt=self._status.reconnect_attempts,
        )
        await self._sleep(delay_ms / 1000)

    # -------------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------------

    def _handle_frame(self, frame: str | bytes) -> None:
        envelope = parse_envelope(frame)
        if envelope is None:
            self._status.frames_dropped += 1
            logger.debug("Dropping malformed frame", size=len(frame))
            return

        self._status.record_frame()
        if envelope.type == HEARTBEAT_EVENT:
            self._record_heartbeat(envelope)

        if not self._filter.accepts(envelope):
            return

        self._status.events_delivered += 1
        try:
            self._on_event(envelope)
        except Exception:
            logger.exception("Event callback failed", event_type=envelope.type)

    def _record_heartbeat(self, envelope: EventEnvelope) -> None:
        data = envelope.data if isinstance(envelope.data, dict) else {}
        sent_at = data.get("timestamp")
        if not isinstance(sent_at, str):
            return
        with contextlib.suppress(ValueError):
            self._status.record_heartbeat(datetime.fromisoformat(sent_at))

    def _set_state(self, state: ConnectionState) -> None:
        if self._stopped or state == self._state:
            return

        self._state = state
        self._status.state = state
        if self._on_status is None:
            return
        try:
            self._on_status(state)
        except Exception:
            logger.exception("Status callback failed", state=state.value)

    @staticmethod
    async def _close_quietly(transport: TransportPort) -> None:
        try:
            await transport.close()
        except Exception as e:
            logger.warning("Error closing transport", transport=transport.kind.value, error=str(e))

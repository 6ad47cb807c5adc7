"""Integration tests against a local WebSocket server."""

from __future__ import annotations

import json
import socket
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
import pytest
from websockets.asyncio.server import ServerConnection, serve

from smartpos_realtime.adapters.transports.sse import SSETransport
from smartpos_realtime.application.connection_manager import RealtimeConnectionManager
from smartpos_realtime.config.schema import RealtimeConfig
from smartpos_realtime.domain.connection import ConnectionState
from smartpos_realtime.domain.events import EventEnvelope
from tests.unit.fakes import RecordingSleep, wait_until

EVENTS = [
    {"type": "sale_created", "topic": "sales", "data": {"total": 125000}},
    {"type": "stock_updated", "topic": "inventory", "data": {"sku": "X1", "qty": 4}},
    {"type": "claim_opened", "topic": "warranty", "data": {"claim": "W-9"}},
    {"type": "backup_completed"},
]


def unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@asynccontextmanager
async def pos_server(close_first: bool = False) -> AsyncIterator[tuple[int, list[str]]]:
    """Serve EVENTS to every client, recording request paths."""
    paths: list[str] = []

    async def handler(connection: ServerConnection) -> None:
        paths.append(connection.request.path)
        if close_first and len(paths) == 1:
            await connection.close()
            return
        for event in EVENTS:
            await connection.send(json.dumps(event))
        await connection.wait_closed()

    async with serve(handler, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        yield port, paths


@pytest.mark.asyncio
async def test_socket_delivers_filtered_events() -> None:
    events: list[EventEnvelope] = []
    states: list[ConnectionState] = []

    async with pos_server() as (port, paths):
        manager = RealtimeConnectionManager(
            RealtimeConfig(
                socket_url=f"ws://127.0.0.1:{port}/api/v1/ws",
                topics=["inventory", "sales"],
            ),
            on_event=events.append,
            on_status=states.append,
            token_provider=lambda: "till token",
            environ={},
        )
        await manager.start()
        await wait_until(lambda: manager.status().events_received == len(EVENTS), timeout=5.0)
        await manager.stop()

    assert [event.type for event in events] == ["sale_created", "stock_updated"]
    assert states == [ConnectionState.CONNECTING, ConnectionState.CONNECTED_SOCKET]
    assert paths == ["/api/v1/ws?t=till%20token"]


@pytest.mark.asyncio
async def test_reconnects_after_server_close() -> None:
    states: list[ConnectionState] = []
    sleep = RecordingSleep(block_after=10)

    async with pos_server(close_first=True) as (port, paths):
        manager = RealtimeConnectionManager(
            RealtimeConfig(socket_url=f"ws://127.0.0.1:{port}/api/v1/ws"),
            on_event=lambda _event: None,
            on_status=states.append,
            sleep=sleep,
            environ={},
        )
        await manager.start()
        await wait_until(lambda: manager.status().events_received == len(EVENTS), timeout=5.0)
        await manager.stop()

    assert len(paths) == 2
    assert sleep.delays == [1.0]
    assert states == [
        ConnectionState.CONNECTING,
        ConnectionState.CONNECTED_SOCKET,
        ConnectionState.RECONNECTING,
        ConnectionState.CONNECTING,
        ConnectionState.CONNECTED_SOCKET,
    ]


@pytest.mark.asyncio
async def test_falls_back_to_stream_when_socket_refused() -> None:
    requests: list[httpx.Request] = []
    body = "".join(f"data: {json.dumps(event)}\n\n" for event in EVENTS).encode()

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    events: list[EventEnvelope] = []
    states: list[ConnectionState] = []
    port = unused_port()

    manager = RealtimeConnectionManager(
        RealtimeConfig(socket_url=f"ws://127.0.0.1:{port}/api/v1/ws", topics=["warranty"]),
        on_event=events.append,
        on_status=states.append,
        token_provider=lambda: "tok",
        stream_factory=lambda url, _config: SSETransport(url, client=client),
        sleep=RecordingSleep(block_after=1),
        environ={},
    )
    await manager.start()
    await wait_until(lambda: len(events) == 1, timeout=5.0)
    await manager.stop()
    await client.aclose()

    assert events[0].type == "claim_opened"
    assert ConnectionState.CONNECTED_STREAM in states
    assert ConnectionState.CONNECTED_SOCKET not in states
    assert str(requests[0].url) == f"http://127.0.0.1:{port}/realtime?t=tok"

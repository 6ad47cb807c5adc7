#!/usr/bin/env python3
"""Mock SmartPOS realtime server for local development.

Emits demo POS events (sales, inventory, warranty, system) on both
channels the client understands:

- WebSocket at /api/v1/ws
- Server-Sent Events at /realtime

Run with ``--no-ws`` to reject WebSocket upgrades and exercise the SSE
fallback. Requires the ``mock`` extra (fastapi, uvicorn).
"""

from __future__ import annotations

import asyncio
import itertools
import json
import random
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from typing import Annotated

import typer
import uvicorn
from fastapi import FastAPI, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse

app = FastAPI(title="Mock SmartPOS Realtime")
app.state.websocket_enabled = True
app.state.interval_s = 2.0

SKUS = ["RAM-DDR5-16G", "SSD-NVME-1T", "CPU-I5-14400", "PSU-650W"]


async def demo_events() -> AsyncIterator[dict]:
    """Yield an endless, repeating mix of demo events."""
    for n in itertools.count(1):
        now = datetime.now(UTC).isoformat()
        kind = n % 5
        if kind == 0:
            yield {"type": "heartbeat", "data": {"timestamp": now}}
        elif kind == 1:
            yield {
                "type": "sale_created",
                "topic": "sales",
                "data": {"sale_id": n, "total": random.randint(50, 5000) * 1000},
            }
        elif kind == 2:
            yield {
                "type": "stock_updated",
                "topic": "inventory",
                "data": {"sku": random.choice(SKUS), "qty": random.randint(0, 40)},
            }
        elif kind == 3:
            yield {
                "type": "claim_opened",
                "category": "warranty",
                "data": {"claim": f"W-{n:05d}"},
            }
        else:
            yield {"type": "backup_completed", "data": {"at": now}}
        await asyncio.sleep(app.state.interval_s)


@app.websocket("/api/v1/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    t: str | None = Query(None, description="Bearer token"),
) -> None:
    """Push demo events over a WebSocket."""
    if not app.state.websocket_enabled:
        await websocket.close(code=1013, reason="WebSocket disabled")
        return

    await websocket.accept()
    print(f"WebSocket client connected (token: {'yes' if t else 'no'})")
    try:
        async for event in demo_events():
            await websocket.send_text(json.dumps(event))
    except WebSocketDisconnect:
        print("WebSocket client disconnected")


@app.get("/realtime")
async def realtime_stream(t: str | None = Query(None, description="Bearer token")):
    """Push demo events as Server-Sent Events."""
    print(f"SSE client connected (token: {'yes' if t else 'no'})")

    async def stream() -> AsyncIterator[str]:
        yield ": connected\n\n"
        async for event in demo_events():
            yield f"data: {json.dumps(event)}\n\n"

    return StreamingResponse(
        stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )


@app.get("/api/v1/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "websocket": app.state.websocket_enabled,
        "timestamp": datetime.now(UTC).isoformat(),
    }


def serve(
    port: Annotated[int, typer.Option("--port", "-p", help="Port to listen on")] = 8787,
    interval: Annotated[
        float, typer.Option("--interval", "-i", help="Seconds between events")
    ] = 2.0,
    no_ws: Annotated[
        bool, typer.Option("--no-ws", help="Reject WebSocket connections")
    ] = False,
) -> None:
    """Run the mock SmartPOS realtime server."""
    app.state.websocket_enabled = not no_ws
    app.state.interval_s = interval

    print(f"Starting mock realtime server on http://localhost:{port}")
    print(f"  export SMARTPOS_API_BASE_URL=http://localhost:{port}")
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="warning")


if __name__ == "__main__":
    typer.run(serve)

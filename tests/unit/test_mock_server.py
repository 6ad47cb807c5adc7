"""Unit tests for the development mock server script."""

from __future__ import annotations

import importlib.util
import sys
from pathlib import Path
from types import ModuleType
from typing import Any

import pytest
import typer
from typer.testing import CliRunner

pytest.importorskip("fastapi")
pytest.importorskip("uvicorn")

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "mock_realtime_server.py"


@pytest.fixture
def mock_server(monkeypatch: pytest.MonkeyPatch) -> ModuleType:
    spec = importlib.util.spec_from_file_location("mock_realtime_server", SCRIPT)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    monkeypatch.setitem(sys.modules, "mock_realtime_server", module)
    spec.loader.exec_module(module)
    return module


def test_options_configure_server(mock_server: ModuleType, monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(mock_server.uvicorn, "run", lambda _app, **kwargs: calls.append(kwargs))
    cli = typer.Typer()
    cli.command()(mock_server.serve)

    result = CliRunner().invoke(cli, ["--port", "9000", "--interval", "0.5", "--no-ws"])

    assert result.exit_code == 0
    assert calls[0]["port"] == 9000
    assert mock_server.app.state.websocket_enabled is False
    assert mock_server.app.state.interval_s == 0.5


def test_health_endpoint(mock_server: ModuleType) -> None:
    from fastapi.testclient import TestClient  # noqa: PLC0415

    response = TestClient(mock_server.app).get("/api/v1/health")

    assert response.status_code == 200
    assert response.json()["websocket"] is True

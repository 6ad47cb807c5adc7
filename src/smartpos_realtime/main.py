"""Main entry point for running a realtime listener."""

from __future__ import annotations

import asyncio
import os
import signal
from typing import TYPE_CHECKING

import structlog

from smartpos_realtime.application.connection_manager import RealtimeConnectionManager
from smartpos_realtime.application.subscriptions import ALL_EVENTS, SubscriptionRegistry
from smartpos_realtime.config.loader import load_config
from smartpos_realtime.observability.logging import LogContext, setup_logging
from smartpos_realtime.security.tokens import EnvironmentTokenProvider

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from smartpos_realtime.config.schema import ClientConfig, RealtimeConfig
    from smartpos_realtime.domain.connection import ConnectionState, ConnectionStatus
    from smartpos_realtime.domain.events import EventEnvelope
    from smartpos_realtime.security.tokens import TokenProvider

logger = structlog.get_logger(__name__)


def build_token_provider(config: RealtimeConfig) -> TokenProvider | None:
    """Create the token provider configured by ``token_env``, if any."""
    if config.token_env:
        return EnvironmentTokenProvider(config.token_env)
    return None


class ListenerRuntime:
    """Runs one connection manager and fans its events out to subscribers.

    Coordinates the lifecycle of:
    - Subscription registry (event fan-out)
    - Realtime connection manager (transport and reconnects)
    """

    def __init__(
        self,
        config: ClientConfig,
        on_status: Callable[[ConnectionState], None] | None = None,
        token_provider: TokenProvider | None = None,
    ) -> None:
        self.config = config
        self.subscriptions = SubscriptionRegistry()
        self._shutdown_event = asyncio.Event()
        self._manager = RealtimeConnectionManager(
            config.realtime,
            on_event=self.subscriptions.dispatch,
            on_status=on_status,
            token_provider=token_provider or build_token_provider(config.realtime),
        )

    @property
    def manager(self) -> RealtimeConnectionManager:
        return self._manager

    def status(self) -> ConnectionStatus:
        return self._manager.status()

    async def start(self) -> None:
        """Start the listener."""
        logger.info(
            "Starting realtime listener",
            name=self.config.name,
            subscribers=len(self.subscriptions),
        )
        await self._manager.start()

    async def stop(self) -> None:
        """Stop the listener gracefully."""
        logger.info("Stopping realtime listener")
        await self._manager.stop()
        self.subscriptions.clear()
        logger.info("Realtime listener stopped")

    async def run_until_shutdown(self) -> None:
        """Run until shutdown signal received."""
        await self._shutdown_event.wait()

    def request_shutdown(self) -> None:
        """Request graceful shutdown."""
        self._shutdown_event.set()


async def run_listener(
    config_path: Path,
    override_path: Path | None = None,
    *,
    on_event: Callable[[EventEnvelope], None],
    on_status: Callable[[ConnectionState], None] | None = None,
    log_level: str | None = None,
    log_format: str | None = None,
) -> None:
    """Load configuration and stream events until SIGINT/SIGTERM.

    Logging options resolve as: explicit argument, then SMARTPOS_LOG_* env vars,
    then the configuration file's logging section.
    """
    config = load_config(config_path, override_path=override_path)
    setup_logging(
        log_level or os.environ.get("SMARTPOS_LOG_LEVEL") or config.logging.level,
        log_format or os.environ.get("SMARTPOS_LOG_FORMAT") or config.logging.format,
    )

    runtime = ListenerRuntime(config, on_status=on_status)
    runtime.subscriptions.subscribe(ALL_EVENTS, on_event)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, runtime.request_shutdown)

    with LogContext(client=config.name):
        try:
            await runtime.start()
            await runtime.run_until_shutdown()
        finally:
            await runtime.stop()


def main() -> None:
    """CLI entry point - delegates to typer app."""
    from smartpos_realtime.cli.app import app  # noqa: PLC0415

    app()


if __name__ == "__main__":
    main()

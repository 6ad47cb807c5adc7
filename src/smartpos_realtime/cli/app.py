"""CLI application for the SmartPOS realtime client.

Provides commands for:
- listen: Stream events to the terminal
- probe: Check which transport connects
- validate: Validate configuration
- resolve: Show the resolved endpoints
- example-config: Write an example configuration
- schema: Export the configuration JSON Schema
"""

from __future__ import annotations

import asyncio
import contextlib
import json
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console
from rich.table import Table

from smartpos_realtime import __version__
from smartpos_realtime.application.connection_manager import RealtimeConnectionManager
from smartpos_realtime.config.endpoints import resolve_endpoints, with_token
from smartpos_realtime.config.loader import (
    ConfigurationError,
    generate_example_config,
    load_config,
)
from smartpos_realtime.config.schema_export import export_json_schema_string
from smartpos_realtime.domain.connection import ConnectionState
from smartpos_realtime.main import build_token_provider, run_listener
from smartpos_realtime.security.tokens import mask_url_token, resolve_token

if TYPE_CHECKING:
    from smartpos_realtime.config.schema import ClientConfig
    from smartpos_realtime.domain.events import EventEnvelope


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"smartpos-realtime {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="smartpos-realtime",
    help="SmartPOS realtime client - live POS events over WebSocket or SSE",
    add_completion=False,
)


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
) -> None:
    """SmartPOS realtime client CLI."""


console = Console()
err_console = Console(stderr=True)

_STATE_STYLES = {
    ConnectionState.CONNECTING: "yellow",
    ConnectionState.CONNECTED_SOCKET: "green",
    ConnectionState.CONNECTED_STREAM: "green",
    ConnectionState.RECONNECTING: "yellow",
    ConnectionState.DISCONNECTED: "red",
}

ConfigArgument = Annotated[
    Path,
    typer.Argument(
        help="Path to configuration YAML file",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
]


def _load_or_exit(config: Path) -> ClientConfig:
    try:
        return load_config(config)
    except ConfigurationError as e:
        err_console.print("[bold red]Invalid configuration:[/bold red]")
        err_console.print(str(e))
        raise typer.Exit(code=1) from e


@app.command()
def listen(
    config: ConfigArgument,
    override: Annotated[
        Path | None,
        typer.Option(
            "--override",
            "-o",
            help="Path to override configuration file",
            exists=True,
        ),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option(
            "--json",
            "-j",
            help="Print each event as one JSON line",
        ),
    ] = False,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            "-l",
            help="Log level (DEBUG, INFO, WARNING, ERROR)",
        ),
    ] = None,
    log_format: Annotated[
        str | None,
        typer.Option(
            "--log-format",
            help="Log format (console, json)",
        ),
    ] = None,
) -> None:
    """Stream realtime events until interrupted.

    Events are written to stdout, connection status and logs to stderr.
    """

    def print_event(envelope: EventEnvelope) -> None:
        if as_json:
            typer.echo(json.dumps(envelope.raw, ensure_ascii=False))
            return
        console.print(
            f"[bold cyan]{envelope.type or '?'}[/bold cyan] "
            f"[magenta]{envelope.resolved_topic}[/magenta] "
            f"{json.dumps(envelope.data, ensure_ascii=False)}"
        )

    def print_status(state: ConnectionState) -> None:
        style = _STATE_STYLES[state]
        err_console.print(f"[{style}]Realtime: {state.value}[/{style}]")

    try:
        asyncio.run(
            run_listener(
                config,
                override_path=override,
                on_event=print_event,
                on_status=print_status,
                log_level=log_level,
                log_format=log_format,
            )
        )
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Shutdown requested[/yellow]")
    except ConfigurationError as e:
        err_console.print("[bold red]Invalid configuration:[/bold red]")
        err_console.print(str(e))
        raise typer.Exit(code=1) from e


@app.command()
def probe(
    config: ConfigArgument,
    timeout: Annotated[
        float,
        typer.Option(
            "--timeout",
            "-t",
            help="Seconds to wait for a connection",
        ),
    ] = 15.0,
) -> None:
    """Test connectivity to the realtime backend.

    Starts a connection, waits for the first transport to open and reports it.
    """
    client_config = _load_or_exit(config)
    states: list[ConnectionState] = []

    async def probe_connection() -> None:
        connected = asyncio.Event()

        def on_status(state: ConnectionState) -> None:
            states.append(state)
            if state.is_connected:
                connected.set()

        manager = RealtimeConnectionManager(
            client_config.realtime,
            on_event=lambda _envelope: None,
            on_status=on_status,
            token_provider=build_token_provider(client_config.realtime),
        )
        await manager.start()
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(connected.wait(), timeout=timeout)
        status = manager.status()
        await manager.stop()

        transport = status.transport.value if status.transport else None
        _print_probe_result(manager, transport, status.last_error)

    asyncio.run(probe_connection())

    if not any(state.is_connected for state in states):
        raise typer.Exit(code=1)


def _print_probe_result(
    manager: RealtimeConnectionManager,
    transport: str | None,
    last_error: str | None,
) -> None:
    table = Table(title="Realtime Probe")
    table.add_column("Item", style="cyan")
    table.add_column("Value")

    table.add_row("WebSocket URL", manager.endpoints.socket_url)
    table.add_row("SSE URL", manager.endpoints.stream_url)
    if transport:
        table.add_row("Status", f"[green]Connected via {transport}[/green]")
    else:
        table.add_row("Status", "[red]Not connected[/red]")
    if last_error:
        table.add_row("Last error", last_error[:80])

    console.print(table)


@app.command()
def validate(
    config: ConfigArgument,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Show detailed validation information",
        ),
    ] = False,
) -> None:
    """Validate a configuration file.

    Checks the configuration for errors without connecting.
    """
    console.print(f"[bold]Validating:[/bold] {config}")

    client_config = _load_or_exit(config)
    console.print("[bold green]Configuration valid![/bold green]")

    if verbose:
        _print_config_summary(client_config)


@app.command()
def resolve(
    config: ConfigArgument,
    show_token: Annotated[
        bool,
        typer.Option(
            "--show-token",
            help="Include the token query parameter in the output",
        ),
    ] = False,
) -> None:
    """Show the endpoints the client would connect to."""
    client_config = _load_or_exit(config)
    endpoints = resolve_endpoints(client_config.realtime)
    token = asyncio.run(resolve_token(build_token_provider(client_config.realtime)))

    def render(url: str) -> str:
        url = with_token(url, token)
        return url if show_token else mask_url_token(url)

    table = Table(title="Realtime Endpoints")
    table.add_column("Transport", style="cyan")
    table.add_column("URL")
    table.add_column("Source", style="magenta")
    table.add_row("WebSocket", render(endpoints.socket_url), endpoints.socket_source.value)
    table.add_row("SSE", render(endpoints.stream_url), endpoints.stream_source.value)
    console.print(table)


@app.command("example-config")
def example_config(
    output: Annotated[
        Path,
        typer.Option(
            "--output",
            "-o",
            help="Output file path",
        ),
    ] = Path("realtime.yaml"),
) -> None:
    """Generate an example configuration file."""
    output.write_text(generate_example_config(), encoding="utf-8")

    console.print(f"[bold green]Example configuration written:[/bold green] {output}")
    console.print("\nEdit this file to match your setup, then run:")
    console.print(f"  [cyan]smartpos-realtime validate {output}[/cyan]")
    console.print(f"  [cyan]smartpos-realtime listen {output}[/cyan]")


@app.command()
def schema(
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Output file path (prints to stdout if not specified)",
        ),
    ] = None,
) -> None:
    """Export the configuration JSON Schema."""
    schema_str = export_json_schema_string(indent=2)

    if output:
        output.write_text(schema_str, encoding="utf-8")
        console.print(f"[bold green]Schema exported:[/bold green] {output}")
    else:
        typer.echo(schema_str)


def _print_config_summary(config: ClientConfig) -> None:
    """Print a summary of the configuration."""
    realtime = config.realtime

    table = Table(title="Configuration Summary")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Name", config.name)
    table.add_row("Topics", ", ".join(realtime.topics) or "all")
    table.add_row("WebSocket URL", realtime.socket_url or "(derived)")
    table.add_row("SSE URL", realtime.stream_url or "(derived)")
    table.add_row("API base URL", realtime.api_base_url or "(environment/default)")
    table.add_row("Max backoff", f"{realtime.max_backoff_ms} ms")
    table.add_row("Fallback grace", f"{realtime.fallback_grace_ms} ms")
    table.add_row("Token", f"${realtime.token_env}" if realtime.token_env else "none")
    table.add_row("Logging", f"{config.logging.level} ({config.logging.format})")

    console.print(table)


if __name__ == "__main__":
    app()

"""``dbhub serve`` — run the MCP server over stdio or HTTP."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click
from rich.markup import escape

from dbhub.cli_commands._output import configure_logging, err_console

if TYPE_CHECKING:
    from dbhub.server import McpServer

logger = logging.getLogger(__name__)


@click.command()
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="YAML file overriding environment settings.",
)
@click.option(
    "--transport",
    type=click.Choice(["stdio", "http"]),
    default=None,
    help="Override TRANSPORT_TYPE.",
)
@click.option("--http-addr", default=None, help="Override HTTP_ADDR (e.g. ':8080').")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"]),
    default=None,
    help="Override LOG_LEVEL.",
)
@click.option("--telemetry", is_flag=True, help="Export trace spans to stderr.")
def serve(
    config_path: str | None,
    transport: str | None,
    http_addr: str | None,
    log_level: str | None,
    telemetry: bool,
) -> None:
    """Serve the database tools to an MCP client."""
    from dbhub.config import load_settings
    from dbhub.database.factory import create_adapter
    from dbhub.errors import ConfigError, StartupError
    from dbhub.server import McpServer
    from dbhub.transport.http import HttpTransport
    from dbhub.transport.stdio import StdioTransport

    try:
        settings = load_settings(
            Path(config_path) if config_path else None,
            transport_type=transport,
            http_addr=http_addr,
            log_level=log_level,
        )
        configure_logging(settings.log_level)
        if settings.transport_type == "http":
            mcp_transport: HttpTransport | StdioTransport = HttpTransport.from_settings(settings)
        else:
            mcp_transport = StdioTransport()
    except ConfigError as exc:
        err_console.print(f"[red]Configuration error:[/red] {escape(str(exc))}")
        sys.exit(1)

    if telemetry:
        from dbhub.utils.telemetry import configure_telemetry

        try:
            configure_telemetry(export_to_console=True)
        except ImportError as exc:
            err_console.print(f"[red]Telemetry error:[/red] {exc}")
            sys.exit(1)

    server = McpServer.from_settings(settings, mcp_transport, create_adapter(settings))

    try:
        asyncio.run(_run_until_signalled(server))
    except StartupError as exc:
        err_console.print(f"[red]Startup error:[/red] {escape(str(exc))}")
        sys.exit(1)


async def _run_until_signalled(server: McpServer) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            logger.debug("Signal handlers unavailable on this platform")
            break
    await server.run(stop)

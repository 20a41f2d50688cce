"""Shared CLI output formatters."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from dbhub.protocol.models import ToolDefinition
    from dbhub.security.models import GateVerdict

console = Console()
# stdout carries the protocol under ``serve --transport stdio``
err_console = Console(stderr=True, soft_wrap=True)


def configure_logging(level: str) -> None:
    """Route ``dbhub`` logs through rich on stderr at *level*."""
    handler = RichHandler(console=err_console, show_path=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root = logging.getLogger("dbhub")
    root.handlers = [handler]
    root.setLevel(level.upper())
    root.propagate = False


def print_verdict(subject: str, verdict: GateVerdict, *, as_json: bool = False) -> None:
    """Pretty-print a security gate decision."""
    if as_json:
        console.print_json(verdict.model_dump_json())
        return

    if verdict.allowed:
        console.print(f"[green]ALLOWED[/green] {escape(_truncate(subject))}")
        return
    console.print(f"[red]REJECTED[/red] {escape(_truncate(subject))}")
    console.print(f"  Reason: {escape(verdict.reason)}")
    if verdict.keyword:
        console.print(f"  Keyword: {verdict.keyword}")


def print_tools_table(tools: list[ToolDefinition], *, as_json: bool = False) -> None:
    """Pretty-print tool definitions as a table."""
    if as_json:
        print_json([tool.model_dump(by_alias=True) for tool in tools])
        return

    table = Table(title="Database Tools")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Arguments", no_wrap=True)
    table.add_column("Description")

    for tool in tools:
        required = set(tool.required)
        args = ", ".join(
            name if name in required else f"[{name}]" for name in tool.properties
        )
        table.add_row(tool.name, args or "-", _truncate(tool.description))

    console.print(table)


def print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str))


def _truncate(text: str, max_len: int = 80) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."

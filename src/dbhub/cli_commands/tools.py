"""``dbhub tools`` — list the tools the server exposes."""

from __future__ import annotations

import click

from dbhub.cli_commands._output import print_tools_table


@click.command()
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format.",
)
def tools(fmt: str) -> None:
    """List the database tools and their arguments."""
    from dbhub.tools.database_tools import TOOL_DEFINITIONS

    print_tools_table(list(TOOL_DEFINITIONS), as_json=fmt == "json")

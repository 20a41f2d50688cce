"""dbhub CLI entrypoint."""

from __future__ import annotations

import click

from dbhub import __version__


@click.group()
@click.version_option(version=__version__, prog_name="dbhub")
def main() -> None:
    """dbhub — read-only database tools for MCP clients."""


# Register subcommands
from dbhub.cli_commands import register_commands  # noqa: E402

register_commands(main)

if __name__ == "__main__":
    main()

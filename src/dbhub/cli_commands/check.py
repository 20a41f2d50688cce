"""``dbhub check`` — run SQL or a table name through the security gate."""

from __future__ import annotations

import sys

import click

from dbhub.cli_commands._output import print_verdict


@click.command()
@click.argument("text")
@click.option(
    "--identifier",
    is_flag=True,
    help="Check TEXT as a table name instead of a query.",
)
@click.option(
    "--max-length",
    type=click.IntRange(min=1),
    default=None,
    help="Override MAX_QUERY_LENGTH.",
)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format.",
)
def check(text: str, identifier: bool, max_length: int | None, fmt: str) -> None:
    """Check whether TEXT would be accepted by the read-only gate.

    Exits with status 1 when TEXT is rejected.
    """
    from dbhub.security.validator import (
        DEFAULT_MAX_QUERY_LENGTH,
        QueryValidator,
        check_identifier,
    )

    if identifier:
        verdict = check_identifier(text)
    else:
        validator = QueryValidator(max_length or DEFAULT_MAX_QUERY_LENGTH)
        verdict = validator.check_query(text)

    print_verdict(text, verdict, as_json=fmt == "json")
    if not verdict.allowed:
        sys.exit(1)

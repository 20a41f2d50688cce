"""``dbhub ping`` — probe a running HTTP server."""

from __future__ import annotations

import sys

import click
import httpx

from dbhub.cli_commands._output import console, print_json


@click.command()
@click.argument("url", default="http://localhost:8080/mcp")
@click.option("--api-key", envvar="HTTP_API_KEY", default="", help="Shared secret header value.")
@click.option("--timeout", type=float, default=10.0, show_default=True, help="Seconds to wait.")
def ping(url: str, api_key: str, timeout: float) -> None:
    """Send a JSON-RPC ``ping`` to the server at URL.

    Exits with status 1 unless the database answered.
    """
    from dbhub.transport.http import API_KEY_HEADER

    headers = {API_KEY_HEADER: api_key} if api_key else {}
    envelope = {"jsonrpc": "2.0", "id": 1, "method": "ping"}

    try:
        response = httpx.post(url, json=envelope, headers=headers, timeout=timeout)
    except httpx.HTTPError as exc:
        console.print(f"[red]Connection error:[/red] {exc}")
        sys.exit(1)

    if response.status_code != 200:
        console.print(f"[red]HTTP {response.status_code}:[/red] {response.text.strip()}")
        sys.exit(1)

    body = response.json()
    print_json(body)
    if "error" in body:
        sys.exit(1)

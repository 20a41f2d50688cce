"""MCPTransport protocol — the capability set shared by every transport.

A transport yields decoded requests to the server loop and delivers the
responses back to whoever sent them.  Correlation is the transport's
concern; the server only ever sees one request at a time.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal, Protocol, runtime_checkable

if TYPE_CHECKING:
    from dbhub.protocol.models import JsonRpcRequest, JsonRpcResponse

TransportKind = Literal["stdio", "http"]


@runtime_checkable
class MCPTransport(Protocol):
    """Abstract transport for server-side MCP JSON-RPC communication."""

    @property
    def kind(self) -> TransportKind: ...

    async def start(self) -> None: ...

    async def read_request(self) -> JsonRpcRequest:
        """Return the next request.

        Raises:
            TransportClosedError: When no more requests will arrive.
            TransportError: When a request could not be decoded.
        """
        ...

    async def write_response(self, response: JsonRpcResponse | None) -> None:
        """Deliver *response*; ``None`` (a notification) is a no-op."""
        ...

    async def close(self) -> None: ...

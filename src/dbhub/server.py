"""McpServer — routes JSON-RPC requests to handshake, tool and liveness handlers.

The server owns the tool registry and runs a single read → dispatch → write
loop over whichever transport it was given.  Tool invocations are therefore
strictly serialized, even when the HTTP transport has many callers parked.

Error surfaces:

- protocol problems (unknown method, bad ``tools/call`` params, unknown
  tool) become JSON-RPC errors with the reserved codes;
- anything that goes wrong *inside* a tool becomes a successful response
  whose result has ``isError: true`` and a readable text block;
- a failing ``ping`` becomes an internal error (-32603).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING

from pydantic import ValidationError

from dbhub import __version__
from dbhub.errors import ToolError, TransportClosedError, TransportError
from dbhub.protocol.errors import internal_error, invalid_params, method_not_found
from dbhub.protocol.models import (
    CallToolParams,
    CallToolResult,
    InitializeResult,
    JsonRpcRequest,
    JsonRpcResponse,
    ListToolsResult,
    ServerInfo,
)
from dbhub.security.validator import QueryValidator
from dbhub.tools.database_tools import DatabaseTools
from dbhub.tools.invoker import ToolInvoker
from dbhub.utils.telemetry import ATTR_RPC_ID, ATTR_RPC_METHOD, ATTR_TRANSPORT, get_tracer

if TYPE_CHECKING:
    from dbhub.config import ServerSettings
    from dbhub.database.adapter import DatabaseAdapter
    from dbhub.tools.registry import ToolRegistry
    from dbhub.transport.base import MCPTransport

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

SERVER_NAME = "dbhub-mcp-server"

RouteHandler = Callable[[JsonRpcRequest], Awaitable[JsonRpcResponse | None]]


class McpServer:
    """Dispatches MCP requests from a transport to the database tools.

    Usage::

        server = McpServer(StdioTransport(), adapter)
        stop = asyncio.Event()
        await server.run(stop)          # returns on EOF or when stop is set
    """

    def __init__(
        self,
        transport: MCPTransport,
        adapter: DatabaseAdapter,
        validator: QueryValidator | None = None,
        *,
        max_rows: int = 1000,
        query_timeout: float = 30.0,
        ping_timeout: float = 5.0,
        connect_timeout: float = 10.0,
    ) -> None:
        self._transport = transport
        self._adapter = adapter
        self._validator = validator or QueryValidator()
        self._ping_timeout = ping_timeout
        self._connect_timeout = connect_timeout

        self._tools = DatabaseTools(adapter, self._validator, max_rows=max_rows).registry()
        self._invoker = ToolInvoker(timeout=query_timeout)
        self._routes: Mapping[str, RouteHandler] = MappingProxyType({
            "initialize": self._handle_initialize,
            "initialized": self._handle_initialized,
            "notifications/initialized": self._handle_initialized,
            "tools/list": self._handle_tools_list,
            "tools/call": self._handle_tools_call,
            "ping": self._handle_ping,
        })

    @classmethod
    def from_settings(
        cls,
        settings: ServerSettings,
        transport: MCPTransport,
        adapter: DatabaseAdapter,
    ) -> McpServer:
        return cls(
            transport,
            adapter,
            QueryValidator(settings.max_query_length),
            max_rows=settings.max_rows,
            query_timeout=settings.query_timeout_sec,
            ping_timeout=settings.ping_timeout_sec,
            connect_timeout=settings.db_conn_timeout_sec,
        )

    @property
    def tools(self) -> ToolRegistry:
        return self._tools

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def run(self, stop: asyncio.Event | None = None) -> None:
        """Connect, start the transport and serve until EOF or *stop* is set.

        Raises:
            StartupError: If the database (or HTTP listener) cannot be brought up.
        """
        stop = stop or asyncio.Event()
        logger.info("MCP server starting with %s transport...", self._transport.kind)

        await self._adapter.connect(self._connect_timeout)
        try:
            logger.info("Registered %d tools", len(self._tools))
            await self._transport.start()
            try:
                logger.info("Server ready")
                await self._serve(stop)
            finally:
                await self._transport.close()
        finally:
            await self._adapter.close()
        logger.info("Server shutdown complete")

    async def _serve(self, stop: asyncio.Event) -> None:
        while not stop.is_set():
            try:
                request = await self._next_request(stop)
            except TransportClosedError:
                logger.info("Client disconnected")
                return
            except TransportError as exc:
                logger.error("Failed to read request: %s", exc)
                continue
            if request is None:
                logger.info("Received shutdown signal")
                return

            response = await self.handle_request(request)
            try:
                await self._transport.write_response(response)
            except TransportError as exc:
                logger.error("Failed to write response: %s", exc)

    async def _next_request(self, stop: asyncio.Event) -> JsonRpcRequest | None:
        """Read one request, or return ``None`` if *stop* fires first."""
        reader = asyncio.ensure_future(self._transport.read_request())
        stopper = asyncio.ensure_future(stop.wait())
        try:
            done, _ = await asyncio.wait({reader, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in (reader, stopper):
                if not waiter.done():
                    waiter.cancel()
        if reader in done:
            return reader.result()
        return None

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def handle_request(self, request: JsonRpcRequest) -> JsonRpcResponse | None:
        """Route *request* by method; notifications never get a response."""
        with _tracer.start_as_current_span("dbhub.rpc.request") as span:
            span.set_attribute(ATTR_RPC_METHOD, request.method)
            span.set_attribute(ATTR_TRANSPORT, self._transport.kind)
            if request.id is not None:
                span.set_attribute(ATTR_RPC_ID, str(request.id))

            handler = self._routes.get(request.method)
            if handler is None:
                response: JsonRpcResponse | None = method_not_found(request.id, request.method)
            else:
                response = await handler(request)

        if request.is_notification:
            if response is not None:
                logger.debug("Dropping response to notification %s", request.method)
            return None
        return response

    async def _handle_initialize(self, request: JsonRpcRequest) -> JsonRpcResponse:
        result = InitializeResult(server_info=ServerInfo(name=SERVER_NAME, version=__version__))
        return JsonRpcResponse(id=request.id, result=result.model_dump(by_alias=True))

    async def _handle_initialized(self, request: JsonRpcRequest) -> JsonRpcResponse:
        logger.info("Client initialized")
        # Only reaches the wire when a client sends it with an id.
        return JsonRpcResponse(id=request.id, result={})

    async def _handle_tools_list(self, request: JsonRpcRequest) -> JsonRpcResponse:
        result = ListToolsResult(tools=self._tools.definitions())
        return JsonRpcResponse(id=request.id, result=result.model_dump(by_alias=True))

    async def _handle_tools_call(self, request: JsonRpcRequest) -> JsonRpcResponse:
        try:
            params = CallToolParams.model_validate(request.params if request.params is not None else {})
        except ValidationError as exc:
            return invalid_params(request.id, "Invalid params", str(exc))

        tool = self._tools.get(params.name)
        if tool is None:
            return invalid_params(request.id, f"Unknown tool: {params.name}")

        try:
            result = await self._invoker.invoke(tool, params.arguments)
        except ToolError as exc:
            logger.warning("Tool %s failed: %s", tool.name, exc)
            result = CallToolResult.from_error(str(exc))
        except Exception as exc:
            logger.exception("Tool %s raised unexpectedly", tool.name)
            result = CallToolResult.from_error(str(exc) or type(exc).__name__)

        return JsonRpcResponse(id=request.id, result=result.model_dump(by_alias=True))

    async def _handle_ping(self, request: JsonRpcRequest) -> JsonRpcResponse:
        try:
            await asyncio.wait_for(self._adapter.ping(), timeout=self._ping_timeout)
        except TimeoutError:
            detail = f"ping timed out after {self._ping_timeout}s"
            return internal_error(request.id, "Database not available", detail)
        except Exception as exc:
            return internal_error(request.id, "Database not available", str(exc))
        return JsonRpcResponse(id=request.id, result={"status": "ok"})

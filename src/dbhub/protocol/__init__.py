"""MCP protocol — JSON-RPC envelopes, tool payloads and error codes."""

from dbhub.protocol.errors import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    error_response,
)
from dbhub.protocol.models import (
    PROTOCOL_VERSION,
    CallToolParams,
    CallToolResult,
    InitializeResult,
    JsonRpcError,
    JsonRpcRequest,
    JsonRpcResponse,
    ListToolsResult,
    TextContent,
    ToolDefinition,
)

__all__ = [
    "INTERNAL_ERROR",
    "INVALID_PARAMS",
    "METHOD_NOT_FOUND",
    "PROTOCOL_VERSION",
    "CallToolParams",
    "CallToolResult",
    "InitializeResult",
    "JsonRpcError",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "ListToolsResult",
    "TextContent",
    "ToolDefinition",
    "error_response",
]

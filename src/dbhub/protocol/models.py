"""MCP models — JSON-RPC 2.0 envelopes and tool payloads.

Implements the subset of the Model Context Protocol a database inspection
server needs: the ``initialize`` handshake, tool discovery (``tools/list``)
and tool execution (``tools/call``).
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, StrictInt, StrictStr, field_validator, model_validator

PROTOCOL_VERSION = "2024-11-05"
JSONRPC_VERSION = "2.0"

RequestId = StrictInt | StrictStr | None

# ---------------------------------------------------------------------------
# JSON-RPC 2.0 envelope
# ---------------------------------------------------------------------------


class JsonRpcRequest(BaseModel):
    """A JSON-RPC 2.0 request; without an ``id`` it is a notification."""

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    method: str
    id: RequestId = None
    params: dict[str, Any] | list[Any] | None = None

    @property
    def is_notification(self) -> bool:
        return self.id is None


class JsonRpcError(BaseModel):
    """A JSON-RPC 2.0 error object."""

    code: int
    message: str
    data: Any = None


class JsonRpcResponse(BaseModel):
    """A JSON-RPC 2.0 response message carrying ``result`` or ``error``."""

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: RequestId = None
    result: Any = None
    error: JsonRpcError | None = None

    @model_validator(mode="after")
    def _result_xor_error(self) -> JsonRpcResponse:
        if self.result is not None and self.error is not None:
            msg = "A response cannot carry both a result and an error"
            raise ValueError(msg)
        return self

    def to_wire(self) -> dict[str, Any]:
        """Serialize for the wire, keeping exactly one of result/error."""
        data: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            data["error"] = self.error.model_dump(exclude_none=True)
        else:
            data["result"] = self.result if self.result is not None else {}
        return data


# ---------------------------------------------------------------------------
# MCP-specific payloads
# ---------------------------------------------------------------------------


class ToolDefinition(BaseModel):
    """A tool definition as returned by ``tools/list``."""

    model_config = {"populate_by_name": True}

    name: str
    description: str = ""
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        alias="inputSchema",
    )

    @property
    def properties(self) -> dict[str, dict[str, Any]]:
        return dict(self.input_schema.get("properties", {}))

    @property
    def required(self) -> list[str]:
        return list(self.input_schema.get("required", []))


class CallToolParams(BaseModel):
    """Parameters of a ``tools/call`` request."""

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)

    @field_validator("arguments", mode="before")
    @classmethod
    def _null_arguments(cls, value: Any) -> Any:
        return {} if value is None else value


class TextContent(BaseModel):
    """A text content block inside a tool result."""

    type: Literal["text"] = "text"
    text: str


class CallToolResult(BaseModel):
    """The result of a ``tools/call`` request."""

    model_config = {"populate_by_name": True}

    content: list[TextContent] = Field(default_factory=list)
    is_error: bool = Field(default=False, alias="isError")

    @classmethod
    def from_text(cls, text: str, *, is_error: bool = False) -> CallToolResult:
        return cls(content=[TextContent(text=text)], is_error=is_error)

    @classmethod
    def from_error(cls, reason: str) -> CallToolResult:
        return cls.from_text(f"Error: {reason}", is_error=True)

    @property
    def text(self) -> str:
        return "\n".join(block.text for block in self.content)


class ToolsCapability(BaseModel):
    model_config = {"populate_by_name": True}

    list_changed: bool = Field(default=False, alias="listChanged")


class ServerCapabilities(BaseModel):
    tools: ToolsCapability = Field(default_factory=ToolsCapability)


class ServerInfo(BaseModel):
    name: str
    version: str


class InitializeResult(BaseModel):
    """Result of the ``initialize`` handshake."""

    model_config = {"populate_by_name": True}

    protocol_version: str = Field(default=PROTOCOL_VERSION, alias="protocolVersion")
    capabilities: ServerCapabilities = Field(default_factory=ServerCapabilities)
    server_info: ServerInfo = Field(alias="serverInfo")


class ListToolsResult(BaseModel):
    """Result of ``tools/list``."""

    tools: list[ToolDefinition] = Field(default_factory=list)

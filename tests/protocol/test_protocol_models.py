"""Tests for JSON-RPC envelopes and MCP payload models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from dbhub.protocol.errors import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    internal_error,
    invalid_params,
    method_not_found,
)
from dbhub.protocol.models import (
    PROTOCOL_VERSION,
    CallToolParams,
    CallToolResult,
    InitializeResult,
    JsonRpcError,
    JsonRpcRequest,
    JsonRpcResponse,
    ServerInfo,
    ToolDefinition,
)


class TestJsonRpcRequest:
    def test_parse_request(self) -> None:
        req = JsonRpcRequest.model_validate_json(
            '{"jsonrpc": "2.0", "id": 3, "method": "tools/list"}'
        )
        assert req.id == 3
        assert req.method == "tools/list"
        assert req.params is None
        assert not req.is_notification

    def test_string_id(self) -> None:
        req = JsonRpcRequest.model_validate({"jsonrpc": "2.0", "id": "abc", "method": "ping"})
        assert req.id == "abc"

    @pytest.mark.parametrize("raw_id", ["true", "1.5"])
    def test_non_integer_id_rejected(self, raw_id: str) -> None:
        with pytest.raises(ValidationError):
            JsonRpcRequest.model_validate_json(f'{{"jsonrpc": "2.0", "id": {raw_id}, "method": "ping"}}')

    def test_missing_id_is_notification(self) -> None:
        req = JsonRpcRequest.model_validate(
            {"jsonrpc": "2.0", "method": "notifications/initialized"}
        )
        assert req.is_notification

    def test_missing_method_rejected(self) -> None:
        with pytest.raises(ValidationError):
            JsonRpcRequest.model_validate({"jsonrpc": "2.0", "id": 1})

    def test_wrong_version_rejected(self) -> None:
        with pytest.raises(ValidationError):
            JsonRpcRequest.model_validate({"jsonrpc": "1.0", "id": 1, "method": "ping"})

    def test_malformed_json_rejected(self) -> None:
        with pytest.raises(ValidationError):
            JsonRpcRequest.model_validate_json("{not json")


class TestJsonRpcResponse:
    def test_result_on_wire(self) -> None:
        wire = JsonRpcResponse(id=1, result={"status": "ok"}).to_wire()
        assert wire == {"jsonrpc": "2.0", "id": 1, "result": {"status": "ok"}}

    def test_error_on_wire_has_no_result(self) -> None:
        resp = JsonRpcResponse(id=2, error=JsonRpcError(code=-32601, message="nope"))
        wire = resp.to_wire()
        assert "result" not in wire
        assert wire["error"] == {"code": -32601, "message": "nope"}

    def test_empty_result_serialized(self) -> None:
        wire = JsonRpcResponse(id=4).to_wire()
        assert wire["result"] == {}
        assert "error" not in wire

    def test_result_and_error_rejected(self) -> None:
        with pytest.raises(ValidationError, match="both a result and an error"):
            JsonRpcResponse(id=1, result={}, error=JsonRpcError(code=1, message="x"))


class TestErrorHelpers:
    def test_method_not_found(self) -> None:
        resp = method_not_found(9, "resources/list")
        assert resp.id == 9
        assert resp.error is not None
        assert resp.error.code == METHOD_NOT_FOUND
        assert resp.error.message == "Method not found: resources/list"

    def test_invalid_params_with_data(self) -> None:
        resp = invalid_params("a", "Invalid params", "name: field required")
        assert resp.error is not None
        assert resp.error.code == INVALID_PARAMS
        assert resp.error.data == "name: field required"

    def test_internal_error(self) -> None:
        resp = internal_error(7, "Database not available")
        assert resp.error is not None
        assert resp.error.code == INTERNAL_ERROR
        assert resp.to_wire()["error"]["message"] == "Database not available"


class TestToolPayloads:
    def test_tool_definition_dumps_camel_case(self) -> None:
        tool = ToolDefinition(
            name="describe_table",
            input_schema={
                "type": "object",
                "properties": {"table_name": {"type": "string"}},
                "required": ["table_name"],
            },
        )
        dumped = tool.model_dump(by_alias=True)
        assert "inputSchema" in dumped
        assert tool.required == ["table_name"]
        assert list(tool.properties) == ["table_name"]

    def test_call_params_null_arguments(self) -> None:
        params = CallToolParams.model_validate({"name": "list_tables", "arguments": None})
        assert params.arguments == {}

    def test_call_params_require_name(self) -> None:
        with pytest.raises(ValidationError):
            CallToolParams.model_validate({"arguments": {}})

    def test_call_result_from_error(self) -> None:
        result = CallToolResult.from_error("table not found: x")
        dumped = result.model_dump(by_alias=True)
        assert dumped["isError"] is True
        assert dumped["content"] == [{"type": "text", "text": "Error: table not found: x"}]

    def test_call_result_text(self) -> None:
        result = CallToolResult.from_text("Query returned no rows.")
        assert result.text == "Query returned no rows."
        assert not result.is_error


class TestInitializeResult:
    def test_wire_shape(self) -> None:
        result = InitializeResult(server_info=ServerInfo(name="dbhub-mcp-server", version="0.1.0"))
        dumped = result.model_dump(by_alias=True)
        assert dumped["protocolVersion"] == PROTOCOL_VERSION
        assert dumped["capabilities"] == {"tools": {"listChanged": False}}
        assert dumped["serverInfo"] == {"name": "dbhub-mcp-server", "version": "0.1.0"}

"""Reserved JSON-RPC error codes and helpers for building error responses."""

from __future__ import annotations

from typing import Any

from dbhub.protocol.models import JsonRpcError, JsonRpcResponse, RequestId

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


def error_response(
    request_id: RequestId,
    code: int,
    message: str,
    data: Any = None,
) -> JsonRpcResponse:
    """Build a response carrying a JSON-RPC error object."""
    return JsonRpcResponse(
        id=request_id,
        error=JsonRpcError(code=code, message=message, data=data),
    )


def method_not_found(request_id: RequestId, method: str) -> JsonRpcResponse:
    return error_response(request_id, METHOD_NOT_FOUND, f"Method not found: {method}")


def invalid_params(request_id: RequestId, message: str, data: Any = None) -> JsonRpcResponse:
    return error_response(request_id, INVALID_PARAMS, message, data)


def internal_error(request_id: RequestId, message: str, data: Any = None) -> JsonRpcResponse:
    return error_response(request_id, INTERNAL_ERROR, message, data)

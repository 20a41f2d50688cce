"""ToolInvoker — argument validation and deadlines around every tool call."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from dbhub.errors import ToolArgumentError, ToolTimeoutError
from dbhub.utils.telemetry import ATTR_TOOL_ERROR, ATTR_TOOL_NAME, get_tracer

if TYPE_CHECKING:
    from dbhub.protocol.models import CallToolResult, ToolDefinition
    from dbhub.tools.registry import RegisteredTool

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

_JSON_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "object": (dict,),
    "array": (list,),
}


def validate_arguments(definition: ToolDefinition, arguments: dict[str, Any]) -> None:
    """Check *arguments* against the tool's declared input schema.

    Required arguments must be present and non-null (and non-empty, for
    strings); any declared argument that is present must have its declared
    primitive type.  Undeclared arguments are ignored.

    Raises:
        ToolArgumentError: On the first missing or mistyped argument.
    """
    required = set(definition.required)
    for name, prop in definition.properties.items():
        declared = str(prop.get("type", ""))
        value = arguments.get(name)
        if value is None:
            if name in required:
                raise ToolArgumentError(name, f"is required and must be a{_article(declared)} {declared}")
            continue
        if not _matches(value, declared):
            raise ToolArgumentError(name, f"must be a{_article(declared)} {declared}")
        if name in required and declared == "string" and not value:
            raise ToolArgumentError(name, "is required and must be a string")


class ToolInvoker:
    """Runs a registered tool with a per-call deadline.

    The deadline covers the whole handler, adapter call included, so one
    stalled database call cannot hold the server loop.
    """

    def __init__(self, *, timeout: float) -> None:
        self._timeout = timeout

    @property
    def timeout(self) -> float:
        return self._timeout

    async def invoke(self, tool: RegisteredTool, arguments: dict[str, Any]) -> CallToolResult:
        with _tracer.start_as_current_span("dbhub.tool.call") as span:
            span.set_attribute(ATTR_TOOL_NAME, tool.name)
            validate_arguments(tool.definition, arguments)
            try:
                result = await asyncio.wait_for(tool.handler(arguments), timeout=self._timeout)
            except TimeoutError:
                raise ToolTimeoutError(tool.name, self._timeout) from None
            span.set_attribute(ATTR_TOOL_ERROR, result.is_error)
            return result


def _matches(value: Any, declared: str) -> bool:
    expected = _JSON_TYPES.get(declared)
    if expected is None:
        return True
    if isinstance(value, bool) and declared != "boolean":
        return False
    return isinstance(value, expected)


def _article(word: str) -> str:
    return "n" if word[:1] in ("a", "e", "i", "o", "u") else ""

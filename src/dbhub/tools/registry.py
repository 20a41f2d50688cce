"""ToolRegistry — the immutable name-to-tool table owned by the server."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Iterator
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from dbhub.protocol.models import CallToolResult, ToolDefinition

ToolHandler = Callable[[dict[str, Any]], Awaitable[CallToolResult]]


@dataclass(frozen=True)
class RegisteredTool:
    """A tool definition bound to the coroutine that implements it."""

    definition: ToolDefinition
    handler: ToolHandler

    @property
    def name(self) -> str:
        return self.definition.name


class ToolRegistry:
    """Read-only mapping of tool name to :class:`RegisteredTool`.

    Built once from an iterable; registration order is preserved for
    ``tools/list``.  Duplicate names are a construction error.
    """

    def __init__(self, tools: Iterable[RegisteredTool]) -> None:
        table: dict[str, RegisteredTool] = {}
        for tool in tools:
            if tool.name in table:
                msg = f"Duplicate tool name: {tool.name}"
                raise ValueError(msg)
            table[tool.name] = tool
        self._tools = MappingProxyType(table)

    def get(self, name: str) -> RegisteredTool | None:
        return self._tools.get(name)

    def definitions(self) -> list[ToolDefinition]:
        return [tool.definition for tool in self._tools.values()]

    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[RegisteredTool]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

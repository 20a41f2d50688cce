"""Tool invocation layer — registry, argument validation and handlers."""

from dbhub.tools.database_tools import DatabaseTools
from dbhub.tools.invoker import ToolInvoker, validate_arguments
from dbhub.tools.registry import RegisteredTool, ToolHandler, ToolRegistry

__all__ = [
    "DatabaseTools",
    "RegisteredTool",
    "ToolHandler",
    "ToolInvoker",
    "ToolRegistry",
    "validate_arguments",
]

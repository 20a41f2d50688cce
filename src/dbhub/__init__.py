"""dbhub — read-only database inspection over the Model Context Protocol."""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from dbhub.server import McpServer as McpServer

_LAZY_EXPORTS = {
    "McpServer": "dbhub.server",
}


def __getattr__(name: str) -> object:
    module_path = _LAZY_EXPORTS.get(name)
    if module_path is not None:
        import importlib

        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'dbhub' has no attribute {name!r}")

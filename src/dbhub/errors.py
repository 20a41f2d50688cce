"""Shared error types for dbhub.

Transport and startup failures are raised as exceptions.  Tool failures are
also raised, but the dispatcher converts them into ``isError`` results rather
than JSON-RPC errors.
"""


class DbhubError(Exception):
    """Base error for all dbhub failures."""


class ConfigError(DbhubError):
    """Configuration could not be loaded or failed validation."""


class StartupError(DbhubError):
    """The server could not start (e.g. the database is unreachable)."""


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class TransportError(DbhubError):
    """A request could not be read or a response could not be delivered."""


class TransportClosedError(TransportError):
    """The transport reached end-of-stream or was shut down."""

    def __init__(self, detail: str = "Transport closed") -> None:
        super().__init__(detail)


# ---------------------------------------------------------------------------
# Tool domain
# ---------------------------------------------------------------------------


class ToolError(DbhubError):
    """Base error for failures inside a tool invocation."""


class ToolArgumentError(ToolError):
    """A tool argument is missing or has the wrong type."""

    def __init__(self, argument: str, detail: str) -> None:
        self.argument = argument
        self.detail = detail
        super().__init__(f"{argument} {detail}")


class QueryRejectedError(ToolError):
    """The security gate refused a query or identifier."""

    def __init__(self, reason: str, *, keyword: str | None = None) -> None:
        self.reason = reason
        self.keyword = keyword
        super().__init__(reason)


class ToolTimeoutError(ToolError):
    """A tool invocation exceeded its deadline."""

    def __init__(self, tool_name: str, timeout: float) -> None:
        self.tool_name = tool_name
        self.timeout = timeout
        super().__init__(f"{tool_name} timed out after {timeout}s")


class AdapterError(ToolError):
    """The database adapter failed to carry out an operation."""

    def __init__(self, operation: str, detail: str = "") -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"failed to {operation}" + (f": {detail}" if detail else ""))


class TableNotFoundError(AdapterError):
    """``describe_table`` found no columns for the requested name."""

    def __init__(self, table_name: str) -> None:
        self.table_name = table_name
        super().__init__("describe table", f"table not found: {table_name}")

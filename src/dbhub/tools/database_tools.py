"""Database inspection tools exposed over ``tools/call``.

Every handler gates its input through the security validator before the
adapter sees it, and returns a single text block: a short header followed
by pretty-printed JSON.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from dbhub.protocol.models import CallToolResult, ToolDefinition
from dbhub.security.validator import ensure_identifier
from dbhub.tools.formatting import pretty_json
from dbhub.tools.registry import RegisteredTool, ToolRegistry

if TYPE_CHECKING:
    from dbhub.database.adapter import DatabaseAdapter
    from dbhub.security.validator import QueryValidator

logger = logging.getLogger(__name__)

LIST_TABLES = ToolDefinition(
    name="list_tables",
    description=(
        "Lists all tables in the connected database. "
        "Returns table names, schemas, and types."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "schema": {
                "type": "string",
                "description": "Optional schema to list instead of the default one",
            },
        },
        "required": [],
    },
)

DESCRIBE_TABLE = ToolDefinition(
    name="describe_table",
    description=(
        "Describes the schema of a specific table. Returns column names, "
        "data types, nullability, defaults, and keys."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "table_name": {
                "type": "string",
                "description": "The name of the table to describe",
            },
        },
        "required": ["table_name"],
    },
)

EXECUTE_READONLY_QUERY = ToolDefinition(
    name="execute_readonly_query",
    description=(
        "Executes a read-only SQL query (SELECT only). Write operations are "
        "strictly blocked. Returns column names and rows."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "The SQL SELECT query to execute"},
        },
        "required": ["query"],
    },
)

EXPLAIN_QUERY = ToolDefinition(
    name="explain_query",
    description=(
        "Returns the execution plan for a SQL query without executing it. "
        "Useful for understanding query performance."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "The SQL query to explain"},
        },
        "required": ["query"],
    },
)


TOOL_DEFINITIONS = (LIST_TABLES, DESCRIBE_TABLE, EXECUTE_READONLY_QUERY, EXPLAIN_QUERY)


class DatabaseTools:
    """Binds the four inspection tools to one adapter and validator."""

    def __init__(
        self,
        adapter: DatabaseAdapter,
        validator: QueryValidator,
        *,
        max_rows: int,
    ) -> None:
        self._adapter = adapter
        self._validator = validator
        self._max_rows = max_rows

    def registry(self) -> ToolRegistry:
        return ToolRegistry([
            RegisteredTool(LIST_TABLES, self.list_tables),
            RegisteredTool(DESCRIBE_TABLE, self.describe_table),
            RegisteredTool(EXECUTE_READONLY_QUERY, self.execute_readonly_query),
            RegisteredTool(EXPLAIN_QUERY, self.explain_query),
        ])

    async def list_tables(self, arguments: dict[str, Any]) -> CallToolResult:
        schema = arguments.get("schema") or None
        if schema is not None:
            ensure_identifier(schema)

        tables = await self._adapter.list_tables(schema)
        return CallToolResult.from_text(f"Found {len(tables)} tables:\n\n{pretty_json(tables)}")

    async def describe_table(self, arguments: dict[str, Any]) -> CallToolResult:
        table_name: str = arguments["table_name"]
        ensure_identifier(table_name)

        columns = await self._adapter.describe_table(table_name)
        return CallToolResult.from_text(
            f"Table '{table_name}' has {len(columns)} columns:\n\n{pretty_json(columns)}"
        )

    async def execute_readonly_query(self, arguments: dict[str, Any]) -> CallToolResult:
        query: str = arguments["query"]
        self._validator.ensure_query(query)

        result = await self._adapter.execute(query, self._max_rows)
        if result.row_count == 0:
            return CallToolResult.from_text("Query returned no rows.")

        text = (
            f"Query executed successfully. Returned {result.row_count} rows, "
            f"{len(result.columns)} columns:\n\n{pretty_json(result)}"
        )
        if result.row_count >= self._max_rows:
            text += f"\n\nResult limited to {self._max_rows} rows (MAX_ROWS setting)"
        return CallToolResult.from_text(text)

    async def explain_query(self, arguments: dict[str, Any]) -> CallToolResult:
        query: str = arguments["query"]
        self._validator.ensure_query(query)

        plan = await self._adapter.explain(query)
        return CallToolResult.from_text(f"Query execution plan:\n\n{pretty_json(plan)}")

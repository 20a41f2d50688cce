"""Shared fixtures: an in-memory database adapter and a scripted transport."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from dbhub.database.adapter import DatabaseKind
from dbhub.database.models import ColumnInfo, QueryResult, TableInfo
from dbhub.errors import AdapterError, TableNotFoundError, TransportClosedError
from dbhub.protocol.models import JsonRpcRequest, JsonRpcResponse


class FakeAdapter:
    """DatabaseAdapter double that records the SQL it was asked to run."""

    def __init__(self) -> None:
        self.tables = [
            TableInfo(table_name="orders", table_schema="shop", table_type="BASE TABLE"),
            TableInfo(table_name="users", table_schema="shop", table_type="BASE TABLE"),
        ]
        self.columns = {
            "users": [
                ColumnInfo(
                    column_name="id",
                    data_type="int",
                    is_nullable="NO",
                    column_key="PRI",
                    extra="auto_increment",
                ),
                ColumnInfo(column_name="email", data_type="varchar(255)", is_nullable="YES"),
            ],
        }
        self.result = QueryResult(columns=["id"], rows=[{"id": 1}, {"id": 2}], row_count=2)
        self.executed: list[str] = []
        self.explained: list[str] = []
        self.connected = False
        self.closed = False
        self.ping_error: Exception | None = None
        self.delay = 0.0

    @property
    def kind(self) -> DatabaseKind:
        return DatabaseKind.MYSQL

    async def connect(self, timeout: float) -> None:
        self.connected = True

    async def close(self) -> None:
        self.closed = True

    async def ping(self) -> None:
        if self.ping_error is not None:
            raise self.ping_error

    async def list_tables(self, schema: str | None = None) -> list[TableInfo]:
        return list(self.tables)

    async def describe_table(self, table_name: str) -> list[ColumnInfo]:
        if table_name not in self.columns:
            raise TableNotFoundError(table_name)
        return self.columns[table_name]

    async def execute(self, sql: str, max_rows: int) -> QueryResult:
        if self.delay:
            await asyncio.sleep(self.delay)
        self.executed.append(sql)
        if "missing_table" in sql:
            raise AdapterError("execute query", "no such table: missing_table")
        rows = self.result.rows[:max_rows]
        return QueryResult(columns=self.result.columns, rows=rows, row_count=len(rows))

    async def explain(self, sql: str) -> QueryResult:
        self.explained.append(sql)
        return QueryResult(
            columns=["id", "select_type", "table"],
            rows=[{"id": 1, "select_type": "SIMPLE", "table": "users"}],
            row_count=1,
        )


class ScriptedTransport:
    """MCPTransport double: replays requests, then reports end-of-stream."""

    def __init__(self, messages: list[dict[str, Any]]) -> None:
        self._requests = [JsonRpcRequest.model_validate(m) for m in messages]
        self.responses: list[JsonRpcResponse | None] = []
        self.started = False
        self.closed = False

    @property
    def kind(self) -> str:
        return "stdio"

    async def start(self) -> None:
        self.started = True

    async def read_request(self) -> JsonRpcRequest:
        if not self._requests:
            raise TransportClosedError()
        return self._requests.pop(0)

    async def write_response(self, response: JsonRpcResponse | None) -> None:
        self.responses.append(response)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def scripted_transport():
    return ScriptedTransport

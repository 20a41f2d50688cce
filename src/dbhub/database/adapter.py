"""DatabaseAdapter protocol — the capability interface every backend satisfies."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from dbhub.database.models import ColumnInfo, QueryResult, TableInfo


class DatabaseKind(str, Enum):
    """Supported database backends."""

    MYSQL = "mysql"
    POSTGRES = "postgres"
    SQLITE = "sqlite"


@runtime_checkable
class DatabaseAdapter(Protocol):
    """Read-only access to one database for the lifetime of the process.

    Only :meth:`connect` bounds itself; callers put deadlines on every other
    operation with :func:`asyncio.wait_for`.
    """

    @property
    def kind(self) -> DatabaseKind: ...

    async def connect(self, timeout: float) -> None: ...
    async def close(self) -> None: ...
    async def ping(self) -> None: ...
    async def list_tables(self, schema: str | None = None) -> list[TableInfo]: ...
    async def describe_table(self, table_name: str) -> list[ColumnInfo]: ...
    async def execute(self, sql: str, max_rows: int) -> QueryResult: ...
    async def explain(self, sql: str) -> QueryResult: ...

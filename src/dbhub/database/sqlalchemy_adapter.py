"""SqlAlchemyAdapter — DatabaseAdapter backed by an async SQLAlchemy engine.

Catalog operations go through the SQLAlchemy inspector so the same code
serves PostgreSQL, MySQL and SQLite.  Queries are sent as raw driver SQL,
never through ``text()``, so colons and percent signs in user SQL are not
treated as bind parameters.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import inspect, text
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from dbhub.database.adapter import DatabaseKind
from dbhub.database.models import ColumnInfo, QueryResult, TableInfo
from dbhub.errors import AdapterError, StartupError, TableNotFoundError

if TYPE_CHECKING:
    from sqlalchemy.engine import URL, Connection

logger = logging.getLogger(__name__)

EXPLAIN_ROW_LIMIT = 1000

_EXPLAIN_PREFIX = {
    DatabaseKind.MYSQL: "EXPLAIN ",
    DatabaseKind.POSTGRES: "EXPLAIN ",
    DatabaseKind.SQLITE: "EXPLAIN QUERY PLAN ",
}


class SqlAlchemyAdapter:
    """Read-only database access through ``sqlalchemy.ext.asyncio``.

    Satisfies the :class:`~dbhub.database.adapter.DatabaseAdapter` protocol.
    The engine is created in :meth:`connect` and disposed in :meth:`close`.
    """

    def __init__(
        self,
        kind: DatabaseKind,
        url: URL | str,
        *,
        engine_options: dict[str, Any] | None = None,
    ) -> None:
        self._kind = kind
        self._url = url
        self._engine_options = engine_options or {}
        self._engine: AsyncEngine | None = None

    @property
    def kind(self) -> DatabaseKind:
        return self._kind

    async def connect(self, timeout: float) -> None:
        """Create the engine and prove the database answers within *timeout*."""
        engine = create_async_engine(self._url, **self._engine_options)
        try:
            await asyncio.wait_for(self._probe(engine), timeout=timeout)
        except Exception as exc:
            await engine.dispose()
            detail = "timed out" if isinstance(exc, TimeoutError) else str(exc)
            raise StartupError(f"failed to connect to {self._kind.value} database: {detail}") from exc
        self._engine = engine
        logger.info("Connected to %s database", self._kind.value)

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None

    async def ping(self) -> None:
        try:
            await self._probe(self._require_engine())
        except SQLAlchemyError as exc:
            raise AdapterError("ping database", _describe(exc)) from exc

    async def list_tables(self, schema: str | None = None) -> list[TableInfo]:
        def _collect(sync_conn: Connection) -> list[TableInfo]:
            inspector = inspect(sync_conn)
            owner = schema or inspector.default_schema_name or ""
            tables = [
                TableInfo(table_name=name, table_schema=owner, table_type="BASE TABLE")
                for name in inspector.get_table_names(schema=schema)
            ]
            views = [
                TableInfo(table_name=name, table_schema=owner, table_type="VIEW")
                for name in inspector.get_view_names(schema=schema)
            ]
            return sorted(tables + views, key=lambda t: t.table_name)

        try:
            async with self._require_engine().connect() as conn:
                return await conn.run_sync(_collect)
        except SQLAlchemyError as exc:
            raise AdapterError("list tables", _describe(exc)) from exc

    async def describe_table(self, table_name: str) -> list[ColumnInfo]:
        schema, table = _split_name(table_name)

        def _collect(sync_conn: Connection) -> list[ColumnInfo]:
            inspector = inspect(sync_conn)
            try:
                columns = inspector.get_columns(table, schema=schema)
            except NoSuchTableError:
                raise TableNotFoundError(table_name) from None
            if not columns:
                raise TableNotFoundError(table_name)
            primary = set(
                inspector.get_pk_constraint(table, schema=schema).get("constrained_columns") or []
            )
            return [
                ColumnInfo(
                    column_name=col["name"],
                    data_type=str(col["type"]),
                    is_nullable="YES" if col.get("nullable", True) else "NO",
                    column_default="" if col.get("default") is None else str(col["default"]),
                    column_key="PRI" if col["name"] in primary else "",
                    extra="auto_increment" if col.get("autoincrement") is True else "",
                )
                for col in columns
            ]

        try:
            async with self._require_engine().connect() as conn:
                return await conn.run_sync(_collect)
        except SQLAlchemyError as exc:
            raise AdapterError("describe table", _describe(exc)) from exc

    async def execute(self, sql: str, max_rows: int) -> QueryResult:
        return await self._fetch(sql, max_rows, operation="execute query")

    async def explain(self, sql: str) -> QueryResult:
        return await self._fetch(
            _EXPLAIN_PREFIX[self._kind] + sql,
            EXPLAIN_ROW_LIMIT,
            operation="explain query",
        )

    async def _fetch(self, sql: str, max_rows: int, *, operation: str) -> QueryResult:
        # The connection is never committed, so closing it rolls back.
        try:
            async with self._require_engine().connect() as conn:
                result = await conn.exec_driver_sql(sql, execution_options={"no_parameters": True})
                if not result.returns_rows:
                    return QueryResult()
                columns = list(result.keys())
                rows = result.fetchmany(max_rows)
        except SQLAlchemyError as exc:
            raise AdapterError(operation, _describe(exc)) from exc

        return QueryResult(
            columns=columns,
            rows=[{col: _jsonable(value) for col, value in zip(columns, row)} for row in rows],
            row_count=len(rows),
        )

    def _require_engine(self) -> AsyncEngine:
        if self._engine is None:
            raise AdapterError("reach database", "database not connected")
        return self._engine

    @staticmethod
    async def _probe(engine: AsyncEngine) -> None:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))


def _split_name(table_name: str) -> tuple[str | None, str]:
    """Split ``schema.table`` and strip identifier quoting."""
    cleaned = table_name.replace("`", "").replace('"', "")
    if "." in cleaned:
        schema, _, table = cleaned.rpartition(".")
        return schema or None, table
    return None, cleaned


def _jsonable(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return value


def _describe(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)

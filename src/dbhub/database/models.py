"""Records returned by database adapters."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class TableInfo(BaseModel):
    """Metadata about one table or view."""

    table_name: str
    table_schema: str = ""
    table_type: str = ""


class ColumnInfo(BaseModel):
    """Metadata about one column of a table."""

    column_name: str
    data_type: str
    is_nullable: str
    column_default: str = ""
    column_key: str = ""
    extra: str = ""


class QueryResult(BaseModel):
    """Rows produced by a query, capped at the caller's row limit."""

    columns: list[str] = Field(default_factory=list)
    rows: list[dict[str, Any]] = Field(default_factory=list)
    row_count: int = 0

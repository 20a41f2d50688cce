"""Database adapters — read-only access to the configured database."""

from dbhub.database.adapter import DatabaseAdapter, DatabaseKind
from dbhub.database.factory import create_adapter
from dbhub.database.models import ColumnInfo, QueryResult, TableInfo
from dbhub.database.sqlalchemy_adapter import SqlAlchemyAdapter

__all__ = [
    "ColumnInfo",
    "DatabaseAdapter",
    "DatabaseKind",
    "QueryResult",
    "SqlAlchemyAdapter",
    "TableInfo",
    "create_adapter",
]

"""Build the single database adapter the process uses."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy.engine import URL

from dbhub.database.adapter import DatabaseKind
from dbhub.database.sqlalchemy_adapter import SqlAlchemyAdapter

if TYPE_CHECKING:
    from dbhub.config import ServerSettings

DRIVERS = {
    DatabaseKind.MYSQL: "mysql+aiomysql",
    DatabaseKind.POSTGRES: "postgresql+asyncpg",
    DatabaseKind.SQLITE: "sqlite+aiosqlite",
}

DEFAULT_PORTS = {
    DatabaseKind.MYSQL: 3306,
    DatabaseKind.POSTGRES: 5432,
}


def build_url(settings: ServerSettings) -> URL:
    """Translate connection settings into a SQLAlchemy URL."""
    kind = settings.db_type
    if kind == DatabaseKind.SQLITE:
        return URL.create(DRIVERS[kind], database=settings.db_name)
    return URL.create(
        DRIVERS[kind],
        username=settings.db_user,
        password=settings.db_password or None,
        host=settings.db_host,
        port=settings.db_port or DEFAULT_PORTS[kind],
        database=settings.db_name,
    )


def engine_options(settings: ServerSettings) -> dict[str, Any]:
    """Pool and driver options for ``create_async_engine``."""
    kind = settings.db_type
    if kind == DatabaseKind.SQLITE:
        return {}

    timeout = settings.db_conn_timeout_sec
    connect_args = (
        {"timeout": timeout} if kind == DatabaseKind.POSTGRES else {"connect_timeout": int(timeout)}
    )
    idle = min(settings.db_max_idle_conns, settings.db_max_conns)
    return {
        "pool_size": idle,
        "max_overflow": settings.db_max_conns - idle,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
        "connect_args": connect_args,
    }


def create_adapter(settings: ServerSettings) -> SqlAlchemyAdapter:
    """Select the adapter configuration for ``settings.db_type``."""
    return SqlAlchemyAdapter(
        settings.db_type,
        build_url(settings),
        engine_options=engine_options(settings),
    )

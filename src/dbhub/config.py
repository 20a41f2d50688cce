"""Server configuration — environment variables, ``.env`` and optional YAML.

Environment variable names follow the deployment conventions of the server
(``DB_TYPE``, ``MAX_ROWS``, ``HTTP_API_KEY`` ...).  A YAML file passed to
:func:`load_settings` overrides the environment for the keys it sets.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated, Any, Literal

import yaml
from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from dbhub.database.adapter import DatabaseKind
from dbhub.errors import ConfigError


class ServerSettings(BaseSettings):
    """Every knob the server reads at startup."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Database
    db_type: DatabaseKind = DatabaseKind.MYSQL
    db_host: str = "localhost"
    db_port: int | None = Field(default=None, gt=0)
    db_name: str = ""
    db_user: str = ""
    db_password: str = ""
    db_max_conns: int = Field(default=10, gt=0)
    db_max_idle_conns: int = Field(default=5, ge=0)
    db_conn_timeout_sec: float = Field(default=10.0, gt=0)

    # Query limits
    query_timeout_sec: float = Field(default=30.0, gt=0)
    max_rows: int = Field(default=1000, gt=0)
    max_query_length: int = Field(default=10_000, gt=0)
    ping_timeout_sec: float = Field(default=5.0, gt=0)

    log_level: Literal["debug", "info", "warning", "error"] = "info"

    # Transport
    transport_type: Literal["stdio", "http"] = "stdio"
    http_addr: str = ":8080"
    http_path: str = "/mcp"
    http_cors_origins: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["*"])
    http_api_key: str = ""
    http_queue_size: int = Field(default=10, gt=0)
    http_enqueue_timeout_sec: float = Field(default=5.0, gt=0)
    http_response_timeout_sec: float = Field(default=60.0, gt=0)
    shutdown_grace_sec: float = Field(default=5.0, gt=0)

    @field_validator("db_type", "log_level", "transport_type", mode="before")
    @classmethod
    def _lowercase(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("http_cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @model_validator(mode="after")
    def _validate_database(self) -> ServerSettings:
        if not self.db_name:
            msg = "DB_NAME is required"
            raise ValueError(msg)
        if self.db_type != DatabaseKind.SQLITE and not self.db_user:
            msg = "DB_USER is required"
            raise ValueError(msg)
        return self

    @property
    def http_host(self) -> str:
        host, _, _ = self.http_addr.rpartition(":")
        return host or "0.0.0.0"

    @property
    def http_port(self) -> int:
        _, _, port = self.http_addr.rpartition(":")
        try:
            return int(port)
        except ValueError as exc:
            msg = f"HTTP_ADDR must look like 'host:port' or ':port', got {self.http_addr!r}"
            raise ConfigError(msg) from exc


def load_settings(path: Path | None = None, **overrides: Any) -> ServerSettings:
    """Build :class:`ServerSettings` from the environment, *path* and *overrides*.

    Precedence, highest first: keyword *overrides*, the YAML file, environment
    variables and ``.env``, field defaults.  ``${VAR}`` references inside the
    YAML file are expanded before parsing.

    Raises:
        ConfigError: On unreadable/invalid YAML or failed validation.
    """
    values: dict[str, Any] = {}
    if path is not None:
        values.update(_read_yaml(path))
    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return ServerSettings(**values)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read {path}: {exc}") from exc

    try:
        data: Any = yaml.safe_load(os.path.expandvars(raw))
    except yaml.YAMLError as exc:
        raise ConfigError(f"YAML parse error: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("Config YAML must be a mapping")
    return {str(key).lower(): value for key, value in data.items()}

"""Describe the configured database for the diagnostics page and bundle."""

from __future__ import annotations

import logging
import re
import sqlite3
from dataclasses import asdict, dataclass, field
from pathlib import Path

from flask import Flask
from sqlalchemy import text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError

from kitchen_inventory.extensions import db
from kitchen_inventory.services.db_schema import migration_status

logger = logging.getLogger("kitchen_inventory.database_info")

PROVIDER_SQLITE = "sqlite"
PROVIDER_POSTGRESQL = "postgresql"
PROVIDER_UNKNOWN = "unknown"

_SENSITIVE_KEYS = ("Password", "Pwd", "Username", "User ID", "UserId", "User")
_URL_CREDENTIALS = re.compile(r"://(?P<user>[^:/@?#]*)(?::(?P<password>[^@/?#]*))?@")


@dataclass(frozen=True)
class DatabaseHealth:
    status: str
    detail: str


@dataclass(frozen=True)
class DatabaseInfo:
    provider: str
    target: str
    driver: str
    provider_version: str
    applied_migrations: list[str] = field(default_factory=list)
    pending_migrations: list[str] = field(default_factory=list)
    health: DatabaseHealth = DatabaseHealth("Error", "Not checked")
    redacted_url: str = ""
    logs_directory: str | None = None
    database_file_path: str | None = None

    @property
    def applied_count(self) -> int:
        return len(self.applied_migrations)

    @property
    def pending_count(self) -> int:
        return len(self.pending_migrations)

    def as_dict(self) -> dict:
        payload = asdict(self)
        payload["applied_count"] = self.applied_count
        payload["pending_count"] = self.pending_count
        return payload


def _mask_credentials(match: re.Match) -> str:
    user = "***" if match.group("user") else ""
    password = ":***" if match.group("password") is not None else ""
    return f"://{user}{password}@"


def redact_connection_string(value: str | None) -> str | None:
    """Mask user names and passwords while keeping the rest readable."""

    if not value or not value.strip():
        return value
    redacted = _URL_CREDENTIALS.sub(_mask_credentials, value, count=1)
    for key in _SENSITIVE_KEYS:
        redacted = re.sub(
            rf"(?i)\b{re.escape(key)}\s*=\s*[^;&]*",
            f"{key}=***",
            redacted,
        )
    return redacted


def map_provider(backend_name: str | None) -> str:
    name = (backend_name or "").lower()
    if "sqlite" in name:
        return PROVIDER_SQLITE
    if "postgres" in name:
        return PROVIDER_POSTGRESQL
    return PROVIDER_UNKNOWN


def sqlite_file_path(database_url: str) -> str | None:
    try:
        url = make_url(database_url)
    except ArgumentError:
        return None
    if map_provider(url.get_backend_name()) != PROVIDER_SQLITE:
        return None
    database = url.database
    if not database or database == ":memory:" or database.startswith("file::memory:"):
        return None
    return str(Path(database).expanduser().resolve())


def describe_target(database_url: str) -> str:
    try:
        url = make_url(database_url)
    except ArgumentError:
        return "(unknown)"

    provider = map_provider(url.get_backend_name())
    if provider == PROVIDER_SQLITE:
        return sqlite_file_path(database_url) or "(in-memory or unknown)"
    if provider == PROVIDER_POSTGRESQL:
        host = url.host or "localhost"
        port = url.port or 5432
        database = url.database or "(unknown)"
        return f"{host}:{port}/{database}"
    return "(unknown)"


def _provider_version(engine: Engine) -> str:
    if engine.dialect.name == "sqlite":
        return f"SQLite {sqlite3.sqlite_version}"
    server_version = getattr(engine.dialect, "server_version_info", None)
    if server_version:
        return ".".join(str(part) for part in server_version)
    dbapi = getattr(engine.dialect, "dbapi", None)
    return str(getattr(dbapi, "__version__", "unknown"))


def check_health(engine: Engine) -> DatabaseHealth:
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except Exception as exc:  # reported, never raised
        return DatabaseHealth("Error", f"{type(exc).__name__}: {exc}")
    return DatabaseHealth("OK", "Connected")


def collect_database_info(app: Flask) -> DatabaseInfo:
    database_url = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    engine = db.engine

    applied: list[str] = []
    pending: list[str] = []
    health = check_health(engine)
    if health.status == "OK":
        try:
            applied, pending = migration_status(engine)
        except Exception as exc:
            logger.warning("Unable to read migration status: %s", exc)
            health = DatabaseHealth("Error", f"{type(exc).__name__}: {exc}")

    return DatabaseInfo(
        provider=map_provider(engine.url.get_backend_name()),
        target=describe_target(database_url),
        driver=engine.dialect.driver,
        provider_version=_provider_version(engine),
        applied_migrations=applied,
        pending_migrations=pending,
        health=health,
        redacted_url=redact_connection_string(database_url) or "",
        logs_directory=app.config.get("INVENTORY_LOG_DIR"),
        database_file_path=sqlite_file_path(database_url),
    )

"""Schema self-healing, SQLite connection setup and Alembic bookkeeping."""

from __future__ import annotations

import logging
from pathlib import Path

from alembic.config import Config as AlembicConfig
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"

SQLITE_PRAGMAS = (
    "PRAGMA foreign_keys=ON",
    "PRAGMA busy_timeout=5000",
    "PRAGMA synchronous=NORMAL",
)


def is_sqlite_file(engine: Engine) -> bool:
    database = engine.url.database
    return engine.dialect.name == "sqlite" and bool(database) and database != ":memory:"


def register_sqlite_pragmas(engine: Engine) -> None:
    """Apply the connection pragmas to every new SQLite connection."""

    if engine.dialect.name != "sqlite":
        return
    use_wal = is_sqlite_file(engine)

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
        cursor = dbapi_connection.cursor()
        try:
            if use_wal:
                cursor.execute("PRAGMA journal_mode=WAL")
            for statement in SQLITE_PRAGMAS:
                cursor.execute(statement)
        finally:
            cursor.close()


def ensure_inventory_schema(engine: Engine, logger: logging.Logger) -> list[str]:
    """Add columns that older inventory databases are missing."""

    added: list[str] = []
    try:
        inspector = inspect(engine)
        item_columns = (
            {column["name"] for column in inspector.get_columns("item")}
            if inspector.has_table("item")
            else None
        )
        movement_columns = (
            {column["name"] for column in inspector.get_columns("stock_movement")}
            if inspector.has_table("stock_movement")
            else None
        )
    except SQLAlchemyError as exc:
        logger.warning("Unable to inspect inventory schema: %s", exc)
        return added

    required = {
        "item": (
            item_columns,
            {"expiry_date": "DATE", "updated_at_utc": "TIMESTAMP"},
        ),
        "stock_movement": (
            movement_columns,
            {"reason": "VARCHAR(256)", "user": "VARCHAR(128)"},
        ),
    }

    statements = []
    for table_name, (existing, columns) in required.items():
        if existing is None:
            continue
        for column_name, column_type in columns.items():
            if column_name not in existing:
                quoted = engine.dialect.identifier_preparer.quote(column_name)
                statements.append(
                    f"ALTER TABLE {table_name} ADD COLUMN {quoted} {column_type}"
                )
                added.append(f"{table_name}.{column_name}")

    if statements:
        with engine.begin() as conn:
            for statement in statements:
                conn.execute(text(statement))
        logger.info("Added missing inventory columns: %s", ", ".join(added))
    return added


def alembic_config(database_url: str | None = None) -> AlembicConfig:
    config = AlembicConfig()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    if database_url:
        config.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))
    return config


def script_directory() -> ScriptDirectory:
    return ScriptDirectory.from_config(alembic_config())


def migration_status(engine: Engine) -> tuple[list[str], list[str]]:
    """Return ``(applied, pending)`` revision ids, oldest first."""

    script = script_directory()
    all_revisions = [revision.revision for revision in script.walk_revisions()]
    all_revisions.reverse()

    with engine.connect() as connection:
        heads = MigrationContext.configure(connection).get_current_heads()

    applied: set[str] = set()
    for head in heads:
        for revision in script.iterate_revisions(head, "base"):
            applied.add(revision.revision)

    return (
        [revision for revision in all_revisions if revision in applied],
        [revision for revision in all_revisions if revision not in applied],
    )


def stamp_head_if_unversioned(engine: Engine, logger: logging.Logger) -> bool:
    """Mark a freshly created schema as up to date with the migration scripts."""

    script = script_directory()
    with engine.begin() as connection:
        context = MigrationContext.configure(connection)
        if context.get_current_heads():
            return False
        context.stamp(script, "heads")
    logger.info("Stamped database schema at migration head")
    return True

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from kitchen_inventory import models  # noqa: F401 - registers the tables
from kitchen_inventory.extensions import db

alembic_cfg = context.config

if alembic_cfg.config_file_name is not None:
    fileConfig(alembic_cfg.config_file_name)

target_metadata = db.Model.metadata


def inventory_database_url() -> str:
    """URL from alembic.ini when set, otherwise the application's own setting."""

    configured = (alembic_cfg.get_main_option("sqlalchemy.url") or "").strip()
    if configured:
        return configured

    from config import Config

    return Config.SQLALCHEMY_DATABASE_URI


def migrate_offline(url: str) -> None:
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=url.startswith("sqlite"),
    )
    with context.begin_transaction():
        context.run_migrations()


def migrate_online(url: str) -> None:
    options = dict(alembic_cfg.get_section(alembic_cfg.config_ini_section) or {})
    options["sqlalchemy.url"] = url
    engine = engine_from_config(options, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with engine.connect() as connection:
        # SQLite cannot ALTER most constraints in place
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    migrate_offline(inventory_database_url())
else:
    migrate_online(inventory_database_url())

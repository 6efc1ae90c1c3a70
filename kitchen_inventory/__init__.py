import logging
import os
from datetime import timezone

from flask import Flask, current_app, redirect, url_for
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from config import Config
from .extensions import db
from . import models  # noqa: F401 - table registration
from .cli import register_cli
from .routes import diagnostics, errors, health, inventory, settings
from .services import db_schema, preferences
from .utils.csv_codec import format_quantity
from .utils.logging import assign_request_id, configure_logging, log_startup_details

__version__ = "1.0.0"

logger = logging.getLogger("kitchen_inventory")

MEMORY_SQLITE_PREFIX = "sqlite:///:memory:"
FILE_SQLITE_PREFIX = "sqlite:///"


def _ping_database() -> None:
    """Raise :class:`OperationalError` if the inventory database cannot be reached."""

    with db.engine.connect() as connection:
        connection.execute(text("SELECT 1"))


def _prepare_sqlite_directory(database_uri: str) -> None:
    if not database_uri.startswith(FILE_SQLITE_PREFIX):
        return
    path = database_uri[len(FILE_SQLITE_PREFIX):]
    if not path or path.startswith(":memory:"):
        return
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)


def _configure_engine(app: Flask) -> None:
    database_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if not database_uri.startswith(MEMORY_SQLITE_PREFIX):
        _prepare_sqlite_directory(database_uri)
        return

    # Every session has to see the same in-memory database.
    options = app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {})
    options.setdefault("connect_args", {}).setdefault("check_same_thread", False)
    options.setdefault("poolclass", StaticPool)


def _open_inventory_database() -> str | None:
    """Connect, create and heal the schema. Returns an error message on failure."""

    db_schema.register_sqlite_pragmas(db.engine)
    try:
        _ping_database()
    except OperationalError as exc:
        cause = str(getattr(exc, "orig", exc)).strip()
        current_app.logger.error(
            "Inventory database unreachable at startup%s",
            f": {cause}" if cause else "",
            exc_info=current_app.debug,
        )
        db.session.remove()
        db.engine.dispose()
        message = (
            "Unable to open the inventory database. Check the "
            "INVENTORY_DB_PROVIDER and INVENTORY_DB_URL settings, then restart."
        )
        return f"{message} (Error: {cause})" if cause else message

    try:
        db.create_all()
        db_schema.ensure_inventory_schema(db.engine, logger)
        db_schema.stamp_head_if_unversioned(db.engine, logger)
        applied, pending = db_schema.migration_status(db.engine)
    except SQLAlchemyError:
        current_app.logger.exception("Inventory schema setup failed")
        db.session.remove()
        return (
            "The inventory tables could not be prepared. See the log file "
            "for details and restart once resolved."
        )

    logger.info(
        "Database ready: provider=%s url=%s migrations applied=%s pending=%s",
        db.engine.dialect.name,
        db.engine.url.render_as_string(hide_password=True),
        len(applied),
        len(pending),
    )
    return None


def create_app(config_override=None):
    app = Flask(__name__)

    app.config.from_object(Config)
    if config_override:
        app.config.update(config_override)

    if not app.testing:
        configure_logging(app)
        log_startup_details(
            logger, app, headless=os.getenv("INVENTORY_HEADLESS", "") == "1"
        )

    _configure_engine(app)
    db.init_app(app)
    preferences.init_app(app)

    with app.app_context():
        error_message = _open_inventory_database()
    app.config["DATABASE_AVAILABLE"] = error_message is None
    app.config["DATABASE_ERROR"] = error_message

    @app.before_request
    def _tag_request():
        assign_request_id()

    @app.template_filter("local_time")
    def _local_time(value, fmt="%Y-%m-%d %H:%M"):
        if value is None:
            return ""
        return value.replace(tzinfo=timezone.utc).astimezone().strftime(fmt)

    app.add_template_filter(format_quantity, "quantity")

    @app.context_processor
    def inject_database_status():
        return {
            "database_online": app.config["DATABASE_AVAILABLE"],
            "database_error_message": app.config["DATABASE_ERROR"],
        }

    for blueprint in (inventory.bp, settings.bp, diagnostics.bp, health.bp, errors.bp):
        app.register_blueprint(blueprint)

    register_cli(app)

    @app.route("/")
    def home():
        return redirect(url_for("inventory.list_items"))

    return app

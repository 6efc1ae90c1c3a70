import logging
import os
from pathlib import Path

POSTGRES_PROVIDERS = {"postgres", "postgresql", "npgsql"}


def _default_data_dir() -> str:
    return os.getenv(
        "INVENTORY_DATA_DIR",
        os.path.join(Path.home(), ".local", "share", "KitchenInventory"),
    )


def _resolve_database_uri(data_dir: str) -> str:
    sqlite_uri = "sqlite:///" + os.path.join(data_dir, "kitchen.db")
    provider = os.getenv("INVENTORY_DB_PROVIDER", "sqlite").strip().lower()
    url = os.getenv("INVENTORY_DB_URL") or os.getenv("DB_URL")

    if provider in POSTGRES_PROVIDERS:
        if not url:
            logging.getLogger("kitchen_inventory.config").warning(
                "PostgreSQL selected but no INVENTORY_DB_URL provided; falling back to SQLite."
            )
            return sqlite_uri
        return url

    # An explicit URL wins even without a provider hint.
    return url or sqlite_uri


class Config:
    INVENTORY_DATA_DIR = _default_data_dir()
    INVENTORY_DB_PROVIDER = os.getenv("INVENTORY_DB_PROVIDER", "sqlite")
    SQLALCHEMY_DATABASE_URI = _resolve_database_uri(INVENTORY_DATA_DIR)
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = os.getenv("SECRET_KEY", "kitchen-inventory-dev")

    INVENTORY_LOG_DIR = os.getenv(
        "INVENTORY_LOG_DIR", os.path.join(INVENTORY_DATA_DIR, "logs")
    )
    INVENTORY_USER = os.getenv("INVENTORY_USER")
    INVENTORY_ENVIRONMENT = os.getenv("INVENTORY_ENVIRONMENT", "Production")
    RECENT_MOVEMENTS_LIMIT = int(os.getenv("RECENT_MOVEMENTS_LIMIT", 100))

    IMPORT_ALLOWED_EXTENSIONS = {"csv", "txt"}

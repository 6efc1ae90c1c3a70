import os
import sys

import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import OperationalError

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

import kitchen_inventory
from kitchen_inventory import create_app
from kitchen_inventory.extensions import db
from kitchen_inventory.services.db_schema import migration_status


def _config(tmp_path, **overrides):
    config = {
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "INVENTORY_DATA_DIR": str(tmp_path),
    }
    config.update(overrides)
    return config


def test_fresh_database_is_created_and_stamped(tmp_path):
    app = create_app(_config(tmp_path))

    assert app.config["DATABASE_AVAILABLE"] is True
    assert app.config["DATABASE_ERROR"] is None
    with app.app_context():
        tables = set(inspect(db.engine).get_table_names())
        assert {"item", "stock_movement", "alembic_version"} <= tables
        assert migration_status(db.engine) == (["0001_initial_inventory"], [])


def test_sqlite_file_database_uses_wal_and_foreign_keys(tmp_path):
    database = tmp_path / "nested" / "kitchen.db"
    app = create_app(_config(tmp_path, SQLALCHEMY_DATABASE_URI=f"sqlite:///{database}"))

    assert database.exists()
    with app.app_context():
        with db.engine.connect() as connection:
            assert connection.execute(text("PRAGMA journal_mode")).scalar() == "wal"
            assert connection.execute(text("PRAGMA foreign_keys")).scalar() == 1
        db.engine.dispose()


def test_older_database_gains_missing_columns(tmp_path):
    database = tmp_path / "legacy.db"
    engine = create_engine(f"sqlite:///{database}")
    with engine.begin() as connection:
        connection.execute(
            text(
                "CREATE TABLE item (id INTEGER PRIMARY KEY, name VARCHAR(200) NOT NULL, "
                "quantity NUMERIC(18, 3) NOT NULL, unit VARCHAR(32) NOT NULL, "
                "created_at_utc TIMESTAMP NOT NULL)"
            )
        )
        connection.execute(
            text(
                "CREATE TABLE stock_movement (id INTEGER PRIMARY KEY, item_id INTEGER, "
                "type VARCHAR(16) NOT NULL, quantity NUMERIC(18, 3) NOT NULL, "
                "timestamp_utc TIMESTAMP NOT NULL)"
            )
        )
    engine.dispose()

    app = create_app(_config(tmp_path, SQLALCHEMY_DATABASE_URI=f"sqlite:///{database}"))

    assert app.config["DATABASE_AVAILABLE"] is True
    with app.app_context():
        inspector = inspect(db.engine)
        item_columns = {column["name"] for column in inspector.get_columns("item")}
        movement_columns = {column["name"] for column in inspector.get_columns("stock_movement")}
        db.engine.dispose()
    assert {"expiry_date", "updated_at_utc"} <= item_columns
    assert {"reason", "user"} <= movement_columns


@pytest.fixture
def offline_app(tmp_path, monkeypatch):
    def refuse():
        raise OperationalError("SELECT 1", {}, Exception("database offline"))

    monkeypatch.setattr(kitchen_inventory, "_ping_database", refuse)
    return create_app(_config(tmp_path))


def test_unreachable_database_is_reported_instead_of_crashing(offline_app):
    assert offline_app.config["DATABASE_AVAILABLE"] is False
    message = offline_app.config["DATABASE_ERROR"]
    assert "Unable to open the inventory database" in message
    assert "database offline" in message

    page = offline_app.test_client().get("/inventory/")
    assert page.status_code == 200
    text_body = page.get_data(as_text=True)
    assert "Unable to open the inventory database" in text_body
    assert "Items: 0" in text_body


def test_health_endpoint_reports_outage(offline_app):
    response = offline_app.test_client().get("/health/")

    assert response.status_code == 503
    assert response.get_json()["status"] == "Error"


def test_health_endpoint_when_online(tmp_path):
    response = create_app(_config(tmp_path)).test_client().get("/health/")

    assert response.status_code == 200
    assert response.get_json() == {"status": "OK", "database": "OK", "detail": "Connected"}


@pytest.mark.parametrize(
    "path",
    ["/inventory/export", "/inventory/movements/export", "/inventory/item/1/movements/export"],
)
def test_exports_flash_instead_of_failing_when_offline(offline_app, path):
    client = offline_app.test_client()

    response = client.get(path)
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/inventory/")

    page = client.get("/inventory/").get_data(as_text=True)
    assert "Export unavailable: the inventory database is offline." in page

import io
import os
import sys
from decimal import Decimal

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from kitchen_inventory import create_app
from kitchen_inventory.extensions import db
from kitchen_inventory.models import Item, StockMovement
from kitchen_inventory.routes.inventory import status_text


@pytest.fixture
def app(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "INVENTORY_DATA_DIR": str(tmp_path),
            "INVENTORY_USER": "tester",
            "SECRET_KEY": "test",
        }
    )
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _seed(app, *items):
    with app.app_context():
        records = [
            Item(name=name, quantity=Decimal(quantity), unit=unit)
            for name, quantity, unit in items
        ]
        db.session.add_all(records)
        db.session.commit()
        return [record.id for record in records]


def _movements(app):
    with app.app_context():
        return [
            (m.item_id, m.type, m.quantity, m.reason)
            for m in StockMovement.query.order_by(StockMovement.id).all()
        ]


def test_status_text():
    assert status_text(3, 3, "") == "Items: 3"
    assert status_text(3, 3, "   ") == "Items: 3"
    assert status_text(1, 3, "ri") == "Items: 1/3 (filter: 'ri')"


def test_root_redirects_to_grid(client):
    response = client.get("/")

    assert response.status_code == 302
    assert response.headers["Location"].endswith("/inventory/")


def test_grid_lists_items_and_filters_by_name_or_unit(app, client):
    _seed(app, ("Rice", "5", "kg"), ("Milk", "2", "L"), ("Eggs", "12", "pcs"))

    page = client.get("/inventory/").get_data(as_text=True)
    assert "Items: 3" in page
    assert 'value="Rice"' in page
    assert 'value="12"' in page

    filtered = client.get("/inventory/?q=KG").get_data(as_text=True)
    assert 'value="Rice"' in filtered
    assert 'value="Milk"' not in filtered
    assert "Items: 1/3" in filtered


def test_grid_flags_items_needing_attention(app, client):
    _seed(app, ("Salt", "1", "kg"), ("Rice", "50", "kg"))

    page = client.get("/inventory/").get_data(as_text=True)

    assert page.count("Low stock") == 1


def test_save_creates_and_updates_items_with_movements(app, client):
    (rice_id,) = _seed(app, ("Rice", "5", "kg"))

    response = client.post(
        "/inventory/save",
        data={
            "item_id": [str(rice_id), "0"],
            "name": ["Rice", "New Item"],
            "quantity": ["2", "1"],
            "unit": ["kg", ""],
            "expiry_date": ["", "2030-01-01"],
        },
        follow_redirects=True,
    )

    page = response.get_data(as_text=True)
    assert "Saved 2 items. Movements recorded: 2." in page
    assert "Last saved" in page

    with app.app_context():
        new_item = Item.query.filter_by(name="New Item").one()
        assert new_item.unit == "pcs"
        new_id = new_item.id
    assert _movements(app) == [
        (rice_id, "Consume", Decimal("3"), "Manual edit"),
        (new_id, "Add", Decimal("1"), "Initial add"),
    ]


def test_invalid_row_blocks_the_whole_save(app, client):
    (rice_id,) = _seed(app, ("Rice", "5", "kg"))

    response = client.post(
        "/inventory/save",
        data={
            "item_id": [str(rice_id), "0"],
            "name": ["Rice", ""],
            "quantity": ["1", "1.2345"],
            "unit": ["kg", "pcs"],
            "expiry_date": ["", ""],
        },
        follow_redirects=True,
    )

    page = response.get_data(as_text=True)
    assert "Row 2: Name is required." in page
    assert "Save blocked" in page
    with app.app_context():
        assert db.session.get(Item, rice_id).quantity == Decimal("5")
        assert Item.query.count() == 1
    assert _movements(app) == []


def test_delete_records_adjustment(app, client):
    (cheese_id,) = _seed(app, ("Cheese", "7", "pcs"))

    response = client.post(f"/inventory/item/{cheese_id}/delete", follow_redirects=True)

    page = response.get_data(as_text=True)
    assert "Item deleted. Adjustment of 7 recorded." in page
    assert _movements(app) == [(None, "Adjust", Decimal("7"), "Delete item")]


def test_delete_of_missing_item_warns(client):
    response = client.post("/inventory/item/99/delete", follow_redirects=True)

    assert "Item 99 was already removed." in response.get_data(as_text=True)


def test_import_upload_reports_counts(app, client):
    _seed(app, ("Rice", "5", "kg"))

    response = client.post(
        "/inventory/import",
        data={"file": (io.BytesIO(b"Id,Name,Quantity,Unit\n,Rice,2,\n0,Tea,1,box\n"), "items.csv")},
        content_type="multipart/form-data",
        follow_redirects=True,
    )

    page = response.get_data(as_text=True)
    assert "Imported 2 items. Added: 1, Updated: 1" in page
    assert [(m[1], m[2], m[3]) for m in _movements(app)] == [
        ("Consume", Decimal("3"), "Import update"),
        ("Add", Decimal("1"), "Import add"),
    ]


def test_import_of_empty_file_changes_nothing(app, client):
    response = client.post(
        "/inventory/import",
        data={"file": (io.BytesIO(b"Id,Name,Quantity,Unit\n"), "items.csv")},
        content_type="multipart/form-data",
        follow_redirects=True,
    )

    assert "No items found in CSV." in response.get_data(as_text=True)
    with app.app_context():
        assert Item.query.count() == 0


def test_import_rejects_unsupported_files(client):
    response = client.post(
        "/inventory/import",
        data={"file": (io.BytesIO(b"\x00\x01"), "items.xlsx")},
        content_type="multipart/form-data",
        follow_redirects=True,
    )

    assert "Unsupported file type" in response.get_data(as_text=True)


def test_import_rejects_non_utf8_text(client):
    response = client.post(
        "/inventory/import",
        data={"file": (io.BytesIO("0,Café,1,pcs\n".encode("latin-1")), "items.csv")},
        content_type="multipart/form-data",
        follow_redirects=True,
    )

    assert "CSV import files must be UTF-8 encoded." in response.get_data(as_text=True)


def test_export_items_downloads_csv(app, client):
    _seed(app, ("Rice", "5", "kg"), ("Milk", "2", "L"))

    response = client.get("/inventory/export?q=milk")

    assert response.status_code == 200
    assert response.mimetype == "text/csv"
    disposition = response.headers["Content-Disposition"]
    assert disposition.startswith("attachment; filename=items-")
    assert disposition.endswith(".csv")
    lines = response.get_data(as_text=True).splitlines()
    assert lines[0] == "Id,Name,Quantity,Unit,ExpiryDate,CreatedAtUtc,UpdatedAtUtc"
    assert len(lines) == 2
    assert ",Milk,2,L," in lines[1]


def test_movement_pages_and_exports(app, client):
    client.post(
        "/inventory/save",
        data={
            "item_id": ["0"],
            "name": ["Flour"],
            "quantity": ["2.5"],
            "unit": ["kg"],
            "expiry_date": [""],
        },
    )
    with app.app_context():
        flour_id = Item.query.filter_by(name="Flour").one().id

    assert "Initial add" in client.get("/inventory/movements").get_data(as_text=True)
    assert "Movements for Flour" in client.get(
        f"/inventory/?item={flour_id}"
    ).get_data(as_text=True)

    recent = client.get("/inventory/movements/export")
    assert "filename=movements-recent-" in recent.headers["Content-Disposition"]
    recent_lines = recent.get_data(as_text=True).splitlines()
    assert recent_lines[0] == "Id,ItemId,ItemName,Type,Quantity,Reason,User,TimestampUtc"
    assert recent_lines[1].startswith(f"1,{flour_id},Flour,Add,2.5,Initial add,tester,")

    per_item = client.get(f"/inventory/item/{flour_id}/movements/export")
    assert f"filename=movements-item-{flour_id}-" in per_item.headers["Content-Disposition"]
    assert len(per_item.get_data(as_text=True).splitlines()) == 2

    assert client.get("/inventory/item/999/movements/export").status_code == 404


def test_save_with_repeated_item_id_is_blocked(app, client):
    (rice_id,) = _seed(app, ("Rice", "5", "kg"))

    response = client.post(
        "/inventory/save",
        data={
            "item_id": [str(rice_id), str(rice_id)],
            "name": ["Rice", "Rice"],
            "quantity": ["7", "3"],
            "unit": ["kg", "kg"],
            "expiry_date": ["", ""],
        },
        follow_redirects=True,
    )

    page = response.get_data(as_text=True)
    assert f"Row 2: Duplicate item id {rice_id}." in page
    assert "Save blocked" in page
    with app.app_context():
        assert db.session.get(Item, rice_id).quantity == Decimal("5")
    assert _movements(app) == []

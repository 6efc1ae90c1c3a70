import os
import sys
from datetime import date
from decimal import Decimal

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from kitchen_inventory.services.ledger import ItemState
from kitchen_inventory.utils.validation import (
    GridRow,
    ItemValidationError,
    ensure_unique_ids,
    parse_quantity_text,
    validate_grid_rows,
    validate_states,
)


def test_grid_rows_become_item_states():
    states = validate_grid_rows(
        [
            GridRow(id="3", name="  Rice ", quantity="2.500", unit="kg", expiry_date="2024-10-01"),
            GridRow(id="0", name="Tea", quantity="1", unit=""),
        ]
    )

    assert states[0] == ItemState(
        id=3, name="Rice", quantity=Decimal("2.500"), unit="kg", expiry_date=date(2024, 10, 1)
    )
    assert states[1].is_new
    assert states[1].unit == "pcs"


def test_grid_errors_are_reported_per_row():
    with pytest.raises(ItemValidationError) as excinfo:
        validate_grid_rows(
            [
                GridRow(id="0", name="", quantity="1"),
                GridRow(id="0", name="Flour", quantity="1.2345"),
                GridRow(id="0", name="Milk", quantity="-1"),
                GridRow(id="0", name="Eggs", quantity="2", expiry_date="01/02/2024"),
            ]
        )

    errors = excinfo.value.errors
    assert "Row 1: Name is required." in errors
    assert (
        "Row 2: Quantity must be a non-negative number with at most 3 decimal places."
        in errors
    )
    assert any(error.startswith("Row 3:") for error in errors)
    assert "Row 4: Expiry date must use the YYYY-MM-DD format." in errors


def test_name_and_unit_length_limits():
    with pytest.raises(ItemValidationError) as excinfo:
        validate_grid_rows([GridRow(id="0", name="x" * 201, quantity="1", unit="u" * 33)])

    assert excinfo.value.errors == [
        "Row 1: Name cannot exceed 200 characters.",
        "Row 1: Unit cannot exceed 32 characters.",
    ]


@pytest.mark.parametrize("text", ["0", "1000000", "0.001", ".5", "12."])
def test_parse_quantity_text_accepts_valid_values(text):
    assert parse_quantity_text(text) == Decimal(text)


@pytest.mark.parametrize("text", ["", "abc", "1e3", "1000000.001", "1,5"])
def test_parse_quantity_text_rejects_invalid_values(text):
    with pytest.raises(ValueError):
        parse_quantity_text(text)


def test_validate_states_labels_offending_rows():
    with pytest.raises(ItemValidationError) as excinfo:
        validate_states(
            [
                ItemState(id=0, name="Tea", quantity=Decimal("1")),
                ItemState(id=0, name="Sugar", quantity=Decimal("0.12345")),
            ],
            label="Import row",
        )

    assert excinfo.value.errors == [
        "Import row 2 (Sugar): Quantity can have at most 3 decimal places."
    ]


def test_validate_states_accepts_trailing_zeros():
    validate_states([ItemState(id=0, name="Tea", quantity=Decimal("2.50000"))])


def test_grid_rows_naming_the_same_item_twice_are_rejected():
    with pytest.raises(ItemValidationError) as excinfo:
        validate_grid_rows(
            [
                GridRow(id="3", name="Rice", quantity="7"),
                GridRow(id="0", name="Tea", quantity="1"),
                GridRow(id="3", name="Rice", quantity="3"),
                GridRow(id="0", name="Tea", quantity="2"),
            ]
        )

    assert excinfo.value.errors == ["Row 3: Duplicate item id 3."]


def test_ensure_unique_ids_ignores_new_items():
    ensure_unique_ids(
        [
            ItemState(id=0, name="Tea", quantity=Decimal("1")),
            ItemState(id=0, name="Coffee", quantity=Decimal("1")),
            ItemState(id=4, name="Rice", quantity=Decimal("1")),
        ]
    )

    with pytest.raises(ItemValidationError) as excinfo:
        ensure_unique_ids(
            [
                ItemState(id=4, name="Rice", quantity=Decimal("7")),
                ItemState(id=4, name="Rice", quantity=Decimal("3")),
            ]
        )
    assert excinfo.value.errors == ["Row 2: Duplicate item id 4."]

"""Row validation for grid edits and imported items."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Iterable

from kitchen_inventory.models import (
    DEFAULT_UNIT,
    MAX_QUANTITY,
    NAME_MAX_LENGTH,
    UNIT_MAX_LENGTH,
)
from kitchen_inventory.services.ledger import ItemState

QUANTITY_PATTERN = re.compile(r"^\d*(\.\d{0,3})?$")


class ItemValidationError(ValueError):
    """Raised when one or more rows cannot be saved."""

    def __init__(self, errors: Iterable[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


@dataclass(frozen=True)
class GridRow:
    """Raw values posted by one grid row."""

    id: str
    name: str
    quantity: str
    unit: str = ""
    expiry_date: str = ""


def parse_quantity_text(text: str | None) -> Decimal:
    value = (text or "").strip()
    if not value:
        raise ValueError("Quantity is required.")
    if not QUANTITY_PATTERN.match(value):
        raise ValueError(
            "Quantity must be a non-negative number with at most 3 decimal places."
        )
    try:
        quantity = Decimal(value)
    except InvalidOperation:
        raise ValueError("Enter a valid number for the quantity.")
    if quantity > MAX_QUANTITY:
        raise ValueError("Quantity cannot exceed 1,000,000.")
    return quantity


def _state_errors(state: ItemState) -> list[str]:
    errors = []
    name = (state.name or "").strip()
    if not name:
        errors.append("Name is required.")
    elif len(name) > NAME_MAX_LENGTH:
        errors.append(f"Name cannot exceed {NAME_MAX_LENGTH} characters.")

    if len(state.unit or "") > UNIT_MAX_LENGTH:
        errors.append(f"Unit cannot exceed {UNIT_MAX_LENGTH} characters.")

    quantity = Decimal(state.quantity or 0)
    if quantity < 0:
        errors.append("Quantity cannot be negative.")
    elif quantity > MAX_QUANTITY:
        errors.append("Quantity cannot exceed 1,000,000.")
    elif quantity.normalize().as_tuple().exponent < -3:
        errors.append("Quantity can have at most 3 decimal places.")
    return errors


def validate_states(states: Iterable[ItemState], label: str = "Row") -> None:
    """Raise :class:`ItemValidationError` if any state would break the item limits."""

    errors = []
    for position, state in enumerate(states, start=1):
        for message in _state_errors(state):
            errors.append(f"{label} {position} ({state.name or 'unnamed'}): {message}")
    if errors:
        raise ItemValidationError(errors)


def ensure_unique_ids(states: Iterable[ItemState], label: str = "Row") -> None:
    """Reject a proposal that names the same saved item twice."""

    seen: set[int] = set()
    errors = []
    for position, state in enumerate(states, start=1):
        if state.is_new:
            continue
        if state.id in seen:
            errors.append(f"{label} {position}: Duplicate item id {state.id}.")
        seen.add(state.id)
    if errors:
        raise ItemValidationError(errors)


def validate_grid_rows(rows: Iterable[GridRow]) -> list[ItemState]:
    states: list[ItemState] = []
    errors: list[str] = []
    seen_ids: set[int] = set()

    for position, row in enumerate(rows, start=1):
        row_errors: list[str] = []

        try:
            item_id = int((row.id or "0").strip() or 0)
        except ValueError:
            row_errors.append("Invalid item id.")
            item_id = 0
        if item_id:
            if item_id in seen_ids:
                row_errors.append(f"Duplicate item id {item_id}.")
            seen_ids.add(item_id)

        name = (row.name or "").strip()
        if not name:
            row_errors.append("Name is required.")
        elif len(name) > NAME_MAX_LENGTH:
            row_errors.append(f"Name cannot exceed {NAME_MAX_LENGTH} characters.")

        unit = (row.unit or "").strip() or DEFAULT_UNIT
        if len(unit) > UNIT_MAX_LENGTH:
            row_errors.append(f"Unit cannot exceed {UNIT_MAX_LENGTH} characters.")

        quantity = Decimal("0")
        try:
            quantity = parse_quantity_text(row.quantity)
        except ValueError as exc:
            row_errors.append(str(exc))

        expiry = None
        expiry_text = (row.expiry_date or "").strip()
        if expiry_text:
            try:
                expiry = date.fromisoformat(expiry_text)
            except ValueError:
                row_errors.append("Expiry date must use the YYYY-MM-DD format.")

        if row_errors:
            errors.extend(f"Row {position}: {message}" for message in row_errors)
            continue

        states.append(
            ItemState(
                id=item_id,
                name=name,
                quantity=quantity,
                unit=unit,
                expiry_date=expiry,
            )
        )

    if errors:
        raise ItemValidationError(errors)
    return states

"""Bind parsed CSV rows to existing items before the ledger diff."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable

from kitchen_inventory.models import DEFAULT_UNIT
from kitchen_inventory.services.ledger import ItemState
from kitchen_inventory.utils.csv_codec import CsvItem


@dataclass(frozen=True)
class ImportProposal:
    proposed: tuple[ItemState, ...]
    added: int
    updated: int

    @property
    def total(self) -> int:
        return self.added + self.updated


def normalize_match_value(value: str | None) -> str:
    return (value or "").strip().casefold()


def _merge_row(base: ItemState, row: CsvItem) -> ItemState:
    unit = row.unit.strip()
    return replace(
        base,
        quantity=row.quantity,
        unit=unit if unit else base.unit,
        expiry_date=row.expiry_date,
    )


def bind_rows(rows: Iterable[CsvItem], existing: Iterable[ItemState]) -> ImportProposal:
    """Match each row to an existing item by id, then by name, else create one.

    Rows landing on the same item collapse into one proposed state, later rows
    winning, so the ledger records a single net change per item.
    """

    existing_sorted = sorted(existing, key=lambda state: state.id)
    by_id = {state.id: state for state in existing_sorted}
    by_name: dict[str, ItemState] = {}
    for state in existing_sorted:
        by_name.setdefault(normalize_match_value(state.name), state)

    merged: dict[tuple[str, object], ItemState] = {}
    new_names: set[str] = set()

    for row in rows:
        match_name = normalize_match_value(row.name)
        target = by_id.get(row.id) if row.id else None
        if target is None:
            target = by_name.get(match_name)

        if target is not None:
            key = ("item", target.id)
            merged[key] = _merge_row(merged.get(key, target), row)
            continue

        key = ("new", match_name)
        if match_name in new_names:
            merged[key] = _merge_row(merged[key], row)
            continue

        new_names.add(match_name)
        merged[key] = ItemState(
            id=0,
            name=row.name.strip(),
            quantity=row.quantity,
            unit=row.unit.strip() or DEFAULT_UNIT,
            expiry_date=row.expiry_date,
            created_at_utc=row.created_at_utc,
            updated_at_utc=row.updated_at_utc,
        )

    added = sum(1 for kind, _ in merged if kind == "new")
    return ImportProposal(
        proposed=tuple(merged.values()),
        added=added,
        updated=len(merged) - added,
    )

"""Inventory operations used by the web layer and the CLI.

Every mutating call runs as one transaction: read the persisted quantities,
diff them against the proposed states, stage the item writes and the
movements, commit. A failure anywhere rolls the whole operation back.
"""

from __future__ import annotations

import getpass
import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from flask import current_app, has_app_context

from kitchen_inventory.models import (
    USER_MAX_LENGTH,
    Item,
    MovementReason,
    StockMovement,
)
from kitchen_inventory.services import inventory_store as store
from kitchen_inventory.services.import_reconciler import bind_rows
from kitchen_inventory.services.ledger import ItemState, plan_delete, reconcile
from kitchen_inventory.services.inventory_store import ItemNotFoundError, write_transaction
from kitchen_inventory.utils import csv_codec
from kitchen_inventory.utils.validation import ensure_unique_ids, validate_states


logger = logging.getLogger("kitchen_inventory.inventory")

NO_ITEMS_MESSAGE = "No items found in CSV."


@dataclass(frozen=True)
class ImportResult:
    added: int
    updated: int
    status_message: str


@dataclass(frozen=True)
class SaveResult:
    upserts: tuple[Item, ...]
    movements: tuple[StockMovement, ...]


def resolve_actor(user: str | None = None) -> str | None:
    """The name recorded on movements: explicit user, configured user, OS user."""

    actor = user
    if not actor and has_app_context():
        actor = current_app.config.get("INVENTORY_USER")
    if not actor:
        try:
            actor = getpass.getuser()
        except (KeyError, OSError):
            actor = None
    if not actor:
        return None
    return actor[:USER_MAX_LENGTH]


def import_status(added: int, updated: int) -> str:
    return f"Imported {added + updated} items. Added: {added}, Updated: {updated}"


def import_csv(text: str, user: str | None = None) -> ImportResult:
    rows = csv_codec.parse_items(text)
    if not rows:
        logger.info("CSV import contained no item rows")
        return ImportResult(added=0, updated=0, status_message=NO_ITEMS_MESSAGE)

    actor = resolve_actor(user)
    with write_transaction():
        existing = store.existing_states(lock=True)
        proposal = bind_rows(rows, existing)
        validate_states(proposal.proposed, label="Import row")
        plan = reconcile(
            proposal.proposed,
            {state.id: state.quantity for state in existing},
            user=actor,
            new_reason=MovementReason.IMPORT_ADD,
            update_reason=MovementReason.IMPORT_UPDATE,
        )
        _, movements = store.apply_plan(plan)

    logger.info(
        "Imported %s rows: %s added, %s updated, %s movements",
        len(rows),
        proposal.added,
        proposal.updated,
        len(movements),
    )
    return ImportResult(
        added=proposal.added,
        updated=proposal.updated,
        status_message=import_status(proposal.added, proposal.updated),
    )


def export_items_csv(items: Iterable[object]) -> str:
    return csv_codec.export_items(items)


def export_movements_csv(
    movements: Iterable[object],
    name_lookup: Mapping[int, str] | None = None,
) -> str:
    return csv_codec.export_movements(movements, name_lookup)


def reconcile_save(proposed: Sequence[ItemState], user: str | None = None) -> SaveResult:
    ensure_unique_ids(proposed)
    actor = resolve_actor(user)
    existing_ids = [state.id for state in proposed if not state.is_new]

    with write_transaction():
        prior = store.quantities_for(existing_ids, lock=True)
        missing = sorted(set(existing_ids) - set(prior))
        if missing:
            raise ItemNotFoundError(
                "Items no longer exist: " + ", ".join(str(item_id) for item_id in missing)
            )
        plan = reconcile(proposed, prior, user=actor)
        items, movements = store.apply_plan(plan)

    logger.info("Saved %s items with %s movements", len(items), len(movements))
    return SaveResult(upserts=tuple(items), movements=tuple(movements))


def reconcile_delete(item_id: int, user: str | None = None) -> StockMovement | None:
    """Delete an item, recording its remaining quantity as an ``Adjust``.

    The quantity comes from storage inside the delete transaction, not from
    whatever the grid was showing.
    """

    actor = resolve_actor(user)
    with write_transaction():
        item = store.get_item(item_id, lock=True)
        if item is None:
            raise ItemNotFoundError(f"Item {item_id} no longer exists.")
        name = item.name
        draft = plan_delete(item.id, item.quantity, user=actor)
        movement = store.add_movement(draft) if draft is not None else None
        store.delete_item(item)

    logger.info(
        "Deleted item %s (%s)%s",
        item_id,
        name,
        " with adjustment" if movement is not None else "",
    )
    return movement

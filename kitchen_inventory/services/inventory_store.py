"""Queries and the write transaction around the item and movement tables."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterable, Iterator

from sqlalchemy.exc import SQLAlchemyError

from kitchen_inventory.extensions import db
from kitchen_inventory.models import Item, StockMovement
from kitchen_inventory.services.ledger import ItemState, LedgerPlan, MovementDraft


logger = logging.getLogger("kitchen_inventory.store")


class InventoryWriteError(RuntimeError):
    """Raised when a save, import or delete could not be committed."""


class ItemNotFoundError(LookupError):
    """Raised when a write targets an item that no longer exists."""


@contextmanager
def write_transaction() -> Iterator[None]:
    """Commit everything done inside the block, or nothing at all."""

    try:
        yield
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Inventory write rolled back")
        raise InventoryWriteError(
            "The changes could not be saved. Nothing was written."
        ) from exc
    except Exception:
        db.session.rollback()
        raise


def to_state(item: Item) -> ItemState:
    return ItemState(
        id=item.id,
        name=item.name,
        quantity=Decimal(item.quantity or 0),
        unit=item.unit,
        expiry_date=item.expiry_date,
        created_at_utc=item.created_at_utc,
        updated_at_utc=item.updated_at_utc,
    )


def matches_filter(item, filter_text: str | None) -> bool:
    needle = (filter_text or "").strip().casefold()
    if not needle:
        return True
    return needle in (item.name or "").casefold() or needle in (item.unit or "").casefold()


def list_items(filter_text: str | None = None) -> list[Item]:
    items = Item.query.order_by(Item.name, Item.id).all()
    return [item for item in items if matches_filter(item, filter_text)]


def get_item(item_id: int, lock: bool = False) -> Item | None:
    query = Item.query.filter(Item.id == item_id)
    if lock:
        query = query.with_for_update()
    return query.first()


def existing_states(lock: bool = False) -> list[ItemState]:
    query = Item.query.order_by(Item.id)
    if lock:
        query = query.with_for_update()
    return [to_state(item) for item in query.all()]


def quantities_for(ids: Iterable[int], lock: bool = False) -> dict[int, Decimal]:
    id_list = sorted({item_id for item_id in ids if item_id})
    if not id_list:
        return {}
    query = db.session.query(Item.id, Item.quantity).filter(Item.id.in_(id_list))
    if lock:
        query = query.with_for_update()
    return {item_id: Decimal(quantity or 0) for item_id, quantity in query.all()}


def item_names_for(ids: Iterable[int | None]) -> dict[int, str]:
    id_list = sorted({item_id for item_id in ids if item_id})
    if not id_list:
        return {}
    rows = db.session.query(Item.id, Item.name).filter(Item.id.in_(id_list)).all()
    return {item_id: name for item_id, name in rows}


def recent_movements(limit: int = 100) -> list[StockMovement]:
    return (
        StockMovement.query.order_by(
            StockMovement.timestamp_utc.desc(), StockMovement.id.desc()
        )
        .limit(limit)
        .all()
    )


def movements_for_item(item_id: int) -> list[StockMovement]:
    return (
        StockMovement.query.filter(StockMovement.item_id == item_id)
        .order_by(StockMovement.timestamp_utc.desc(), StockMovement.id.desc())
        .all()
    )


def add_movement(draft: MovementDraft, item_id: int | None = None) -> StockMovement:
    movement = StockMovement(
        item_id=item_id if item_id is not None else draft.item_id,
        type=draft.movement_type,
        quantity=draft.quantity,
        reason=draft.reason,
        user=draft.user,
        timestamp_utc=draft.timestamp_utc,
    )
    db.session.add(movement)
    return movement


def apply_plan(plan: LedgerPlan) -> tuple[list[Item], list[StockMovement]]:
    """Stage the upserts and movements of ``plan`` in the current session.

    Must run inside :func:`write_transaction`; nothing is committed here.
    """

    existing_ids = [state.id for state in plan.upserts if not state.is_new]
    items_by_id = (
        {item.id: item for item in Item.query.filter(Item.id.in_(existing_ids)).all()}
        if existing_ids
        else {}
    )

    items: list[Item] = []
    for state in plan.upserts:
        if state.is_new:
            item = Item(
                name=state.name,
                quantity=state.quantity,
                unit=state.unit,
                expiry_date=state.expiry_date,
                created_at_utc=state.created_at_utc,
                updated_at_utc=state.updated_at_utc,
            )
            db.session.add(item)
        else:
            item = items_by_id.get(state.id)
            if item is None:
                raise ItemNotFoundError(f"Item {state.id} no longer exists.")
            item.name = state.name
            item.quantity = state.quantity
            item.unit = state.unit
            item.expiry_date = state.expiry_date
            item.updated_at_utc = state.updated_at_utc
        items.append(item)

    # New items need their ids before movements can point at them.
    db.session.flush()

    movements = []
    for draft in plan.movements:
        owner = items[draft.upsert_index] if draft.upsert_index is not None else None
        movements.append(add_movement(draft, owner.id if owner is not None else None))
    db.session.flush()
    return items, movements


def delete_item(item: Item) -> None:
    # Pending movements must exist before the delete nulls their item_id.
    db.session.flush()
    db.session.delete(item)
    db.session.flush()

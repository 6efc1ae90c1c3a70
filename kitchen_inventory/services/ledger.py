"""Stock movement ledger engine.

``reconcile`` compares proposed item states with the quantities currently
persisted and returns the item writes plus the movements that explain them.
It performs no I/O; :mod:`kitchen_inventory.services.inventory` applies the
plan inside one transaction.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Mapping

from kitchen_inventory.models import DEFAULT_UNIT, MovementReason, MovementType, utcnow


@dataclass(frozen=True)
class ItemState:
    id: int
    name: str
    quantity: Decimal
    unit: str = DEFAULT_UNIT
    expiry_date: date | None = None
    created_at_utc: datetime | None = None
    updated_at_utc: datetime | None = None

    @property
    def is_new(self) -> bool:
        return not self.id


@dataclass(frozen=True)
class MovementDraft:
    movement_type: str
    quantity: Decimal
    reason: str
    timestamp_utc: datetime
    user: str | None = None
    item_id: int | None = None
    # Position of the owning entry in ``LedgerPlan.upserts``; new items have no id yet.
    upsert_index: int | None = None


@dataclass(frozen=True)
class LedgerPlan:
    upserts: tuple[ItemState, ...]
    movements: tuple[MovementDraft, ...]


def classify_delta(delta: Decimal) -> tuple[str, Decimal] | None:
    """Return ``(type, magnitude)`` for a signed change, or ``None`` for no change."""

    if delta == 0:
        return None
    if delta > 0:
        return MovementType.ADD, delta
    return MovementType.CONSUME, -delta


def reconcile(
    proposed: Iterable[ItemState],
    prior_quantities: Mapping[int, Decimal],
    *,
    now: datetime | None = None,
    user: str | None = None,
    new_reason: str = MovementReason.INITIAL_ADD,
    update_reason: str = MovementReason.MANUAL_EDIT,
) -> LedgerPlan:
    timestamp = now or utcnow()
    upserts: list[ItemState] = []
    movements: list[MovementDraft] = []

    for state in proposed:
        index = len(upserts)
        quantity = Decimal(state.quantity or 0)

        if state.is_new:
            upserts.append(
                replace(
                    state,
                    id=0,
                    quantity=quantity,
                    created_at_utc=timestamp,
                    updated_at_utc=timestamp,
                )
            )
            if quantity != 0:
                movements.append(
                    MovementDraft(
                        movement_type=MovementType.ADD,
                        quantity=abs(quantity),
                        reason=new_reason,
                        timestamp_utc=timestamp,
                        user=user,
                        upsert_index=index,
                    )
                )
            continue

        upserts.append(replace(state, quantity=quantity, updated_at_utc=timestamp))
        prior = Decimal(prior_quantities.get(state.id, 0) or 0)
        classified = classify_delta(quantity - prior)
        if classified is None:
            continue

        movement_type, magnitude = classified
        movements.append(
            MovementDraft(
                movement_type=movement_type,
                quantity=magnitude,
                reason=update_reason,
                timestamp_utc=timestamp,
                user=user,
                item_id=state.id,
                upsert_index=index,
            )
        )

    return LedgerPlan(upserts=tuple(upserts), movements=tuple(movements))


def plan_delete(
    item_id: int,
    last_quantity: Decimal | None,
    *,
    now: datetime | None = None,
    user: str | None = None,
) -> MovementDraft | None:
    """The ``Adjust`` entry written just before an item is removed."""

    quantity = Decimal(last_quantity or 0)
    if quantity == 0:
        return None
    return MovementDraft(
        movement_type=MovementType.ADJUST,
        quantity=abs(quantity),
        reason=MovementReason.DELETE_ITEM,
        timestamp_utc=now or utcnow(),
        user=user,
        item_id=item_id,
    )

from datetime import datetime, timezone
from decimal import Decimal

from kitchen_inventory.extensions import db


DEFAULT_UNIT = "pcs"
NAME_MAX_LENGTH = 200
UNIT_MAX_LENGTH = 32
REASON_MAX_LENGTH = 256
USER_MAX_LENGTH = 128
MAX_QUANTITY = Decimal("1000000")


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the way every column stores it."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


class MovementType:
    ADD = "Add"
    CONSUME = "Consume"
    ADJUST = "Adjust"


class MovementReason:
    INITIAL_ADD = "Initial add"
    MANUAL_EDIT = "Manual edit"
    IMPORT_ADD = "Import add"
    IMPORT_UPDATE = "Import update"
    DELETE_ITEM = "Delete item"


class Item(db.Model):
    __tablename__ = "item"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(NAME_MAX_LENGTH), nullable=False)
    quantity = db.Column(db.Numeric(18, 3), nullable=False, default=Decimal("0"))
    unit = db.Column(db.String(UNIT_MAX_LENGTH), nullable=False, default=DEFAULT_UNIT)
    expiry_date = db.Column(db.Date, nullable=True)
    created_at_utc = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at_utc = db.Column(db.DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<Item {self.id} {self.name!r} {self.quantity} {self.unit}>"


class StockMovement(db.Model):
    __tablename__ = "stock_movement"
    __table_args__ = (
        db.Index("ix_stock_movement_item_timestamp", "item_id", "timestamp_utc"),
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(
        db.Integer,
        db.ForeignKey("item.id", ondelete="SET NULL"),
        nullable=True,
    )
    type = db.Column(db.String(16), nullable=False)  # Add, Consume, Adjust
    quantity = db.Column(db.Numeric(18, 3), nullable=False)
    reason = db.Column(db.String(REASON_MAX_LENGTH), nullable=True)
    user = db.Column(db.String(USER_MAX_LENGTH), nullable=True)
    timestamp_utc = db.Column(db.DateTime, nullable=False, default=utcnow)

    item = db.relationship("Item", backref="movements")

    def __repr__(self) -> str:
        return f"<StockMovement {self.id} {self.type} {self.quantity} item={self.item_id}>"

"""create item and stock movement tables

Revision ID: 0001_initial_inventory
Revises:
Create Date: 2024-05-04

"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial_inventory"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "item",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("quantity", sa.Numeric(18, 3), nullable=False),
        sa.Column("unit", sa.String(length=32), nullable=False),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("created_at_utc", sa.DateTime(), nullable=False),
        sa.Column("updated_at_utc", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "stock_movement",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "item_id",
            sa.Integer(),
            sa.ForeignKey("item.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("quantity", sa.Numeric(18, 3), nullable=False),
        sa.Column("reason", sa.String(length=256), nullable=True),
        sa.Column("user", sa.String(length=128), nullable=True),
        sa.Column("timestamp_utc", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_stock_movement_item_timestamp",
        "stock_movement",
        ["item_id", "timestamp_utc"],
    )


def downgrade():
    op.drop_index("ix_stock_movement_item_timestamp", table_name="stock_movement")
    op.drop_table("stock_movement")
    op.drop_table("item")

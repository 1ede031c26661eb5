"""Restock history: append-only log of restocks and empty-stock resets

Revision ID: 20261019_restock_events
Revises: 20261018_initial
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_restock_events"
down_revision = "20261018_initial"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "restock_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(128), nullable=True),
        sa.Column("unit", sa.String(16), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("note", sa.String(32), nullable=False, server_default="Restocking"),
        sa.Column("at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("restock_events", schema=None) as batch_op:
        batch_op.create_index("ix_restock_events_user_id", ["user_id"], unique=False)
        batch_op.create_index("ix_restock_events_product_id", ["product_id"], unique=False)
        batch_op.create_index("ix_restock_events_at", ["at"], unique=False)
        batch_op.create_index("ix_restock_events_user_at", ["user_id", "at"], unique=False)


def downgrade():
    op.drop_table("restock_events")

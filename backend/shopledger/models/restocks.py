# Overview: Append-only stock movement log for restocks and empty-stock resets.

from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from shopledger.time_utils import to_utc_z
from .orders import ImmutableRecordError


NOTE_RESTOCK = "Restocking"
NOTE_EMPTY_STOCK = "Empty Stock"


class RestockEvent(db.Model):
    """
    One manual stock movement on one product.

    quantity is the amount added (Restocking) or the quantity on hand that
    was removed (Empty Stock). Name, category and unit are copied from the
    product at the time of the movement so the log still reads correctly
    after the catalog changes.

    IMMUTABLE: Rows are never updated or deleted.
    """
    __tablename__ = "restock_events"
    __table_args__ = (
        db.Index("ix_restock_events_user_at", "user_id", "at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=True)
    unit = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    note = db.Column(db.String(32), nullable=False, default=NOTE_RESTOCK)

    at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "category": self.category,
            "unit": self.unit,
            "quantity": self.quantity,
            "note": self.note,
            "at": to_utc_z(self.at),
        }


@event.listens_for(RestockEvent, "before_update")
def _block_restock_event_update(mapper, connection, target):
    raise ImmutableRecordError(f"Restock history row {target.id} is append-only")


@event.listens_for(RestockEvent, "before_delete")
def _block_restock_event_delete(mapper, connection, target):
    raise ImmutableRecordError(f"Restock history row {target.id} cannot be deleted")

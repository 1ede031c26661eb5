# Overview: Product catalog rows with stock on hand and normalized pack size.

from __future__ import annotations

from ..extensions import db
from ..pack_size import PackSize
from shopledger.time_utils import to_utc_z


UNIT_PIECE = "piece"
UNIT_BOX = "box"
UNIT_KG = "kg"
UNIT_LITRE = "litre"
UNIT_GM = "gm"
UNIT_ML = "ml"

VALID_UNITS = [UNIT_PIECE, UNIT_BOX, UNIT_KG, UNIT_LITRE, UNIT_GM, UNIT_ML]


class Product(db.Model):
    """
    Product master data and available stock.

    Stock (quantity) is only changed through atomic SQL increments in
    inventory_service so that concurrent orders touching the same product
    commute. Pack size is stored already normalized (see pack_size.py).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_user_name", "user_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Owning shop
    user_id = db.Column(db.String(64), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=True)
    unit = db.Column(db.String(16), nullable=False, default=UNIT_PIECE)

    pack_quantity = db.Column(db.Integer, nullable=True)
    pack_size_value = db.Column(db.Integer, nullable=True)
    pack_size_unit = db.Column(db.String(8), nullable=True)

    # Authoritative storage in cents
    purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)
    selling_price_cents = db.Column(db.Integer, nullable=False, default=0)
    mrp_cents = db.Column(db.Integer, nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def pack_size(self) -> PackSize | None:
        if self.pack_size_value is None or self.pack_size_unit is None:
            return None
        return PackSize(value=self.pack_size_value, unit=self.pack_size_unit)

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= (self.min_stock or 0)

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} user_id={self.user_id!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        pack_size = self.pack_size
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "category": self.category,
            "unit": self.unit,
            "pack_quantity": self.pack_quantity,
            "pack_size": pack_size.to_dict() if pack_size else None,
            "purchase_price_cents": self.purchase_price_cents,
            "selling_price_cents": self.selling_price_cents,
            "mrp_cents": self.mrp_cents,
            "quantity": self.quantity,
            "min_stock": self.min_stock,
            "is_low_stock": self.is_low_stock,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

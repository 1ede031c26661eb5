# Overview: Customer rows carrying the cached debit, credit and lifetime sales balances.

from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data and running balance.

    BALANCES (all amounts in cents):
    - debit_cents: what the customer currently owes the shop
    - credit_cents: what the shop owes the customer (overpayments)
    - total_sales_cents: lifetime gross, reduced only when an order is discarded

    Balances are only changed through customer_service, using atomic SQL
    increments inside the settlement transaction.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_user_name", "user_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    shop_name = db.Column(db.String(255), nullable=False)
    shop_address = db.Column(db.String(512), nullable=False)
    contacts = db.Column(db.JSON, nullable=False, default=list)
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    remarks = db.Column(db.Text, nullable=True)

    debit_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_cents = db.Column(db.Integer, nullable=False, default=0)
    total_sales_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    @property
    def net_balance_cents(self) -> int:
        return self.debit_cents - self.credit_cents

    def summary_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "shop_name": self.shop_name,
            "debit_cents": self.debit_cents,
            "credit_cents": self.credit_cents,
            "total_sales_cents": self.total_sales_cents,
        }

    def to_dict(self) -> dict:
        return {
            **self.summary_dict(),
            "user_id": self.user_id,
            "shop_address": self.shop_address,
            "contacts": list(self.contacts or []),
            "latitude": self.latitude,
            "longitude": self.longitude,
            "remarks": self.remarks,
            "net_balance_cents": self.net_balance_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

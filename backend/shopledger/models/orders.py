# Overview: Order aggregate, bill lines and the append-only settlement history.

from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from shopledger.time_utils import to_utc_z
from .inventory import VALID_UNITS


# =============================================================================
# ORDER STATE (single tagged column)
# =============================================================================

STATE_UNSETTLED = "UNSETTLED"
STATE_SETTLED_CASH = "SETTLED_CASH"
STATE_SETTLED_BANK = "SETTLED_BANK"
STATE_SETTLED_DEBT = "SETTLED_DEBT"
STATE_DISCARDED = "DISCARDED"

VALID_STATES = [
    STATE_UNSETTLED,
    STATE_SETTLED_CASH,
    STATE_SETTLED_BANK,
    STATE_SETTLED_DEBT,
    STATE_DISCARDED,
]


# =============================================================================
# SETTLEMENT METHODS / HISTORY ACTIONS
# =============================================================================

METHOD_CASH = "Cash"
METHOD_BANK = "Bank/UPI"
METHOD_DEBT = "Debt"
METHOD_DISCARDED = "Discarded"

PAYMENT_METHODS = [METHOD_CASH, METHOD_BANK]
SETTLE_METHODS = [METHOD_CASH, METHOD_BANK, METHOD_DEBT]

# Fully-paid state reached through each payment method
_PAID_STATE_BY_METHOD = {
    METHOD_CASH: STATE_SETTLED_CASH,
    METHOD_BANK: STATE_SETTLED_BANK,
}

_METHOD_BY_STATE = {
    STATE_UNSETTLED: None,
    STATE_SETTLED_CASH: METHOD_CASH,
    STATE_SETTLED_BANK: METHOD_BANK,
    STATE_SETTLED_DEBT: METHOD_DEBT,
    STATE_DISCARDED: METHOD_DISCARDED,
}

ACTION_CREATED = "Created"
ACTION_SETTLED = "Settled"
ACTION_DISCARDED = "Discarded"

DELIVERY_PENDING = "Pending"
DELIVERY_ON_THE_WAY = "On the Way"
DELIVERY_DELIVERED = "Delivered"

VALID_DELIVERY_STATUSES = [DELIVERY_PENDING, DELIVERY_ON_THE_WAY, DELIVERY_DELIVERED]


def paid_state_for(method: str) -> str:
    return _PAID_STATE_BY_METHOD[method]


class ImmutableRecordError(RuntimeError):
    """Raised when code tries to modify or delete an append-only record."""


class Order(db.Model):
    """
    Sales order aggregate: line items, totals and settlement state.

    STATE MACHINE (state column):
    - UNSETTLED: created, nothing settled yet
    - SETTLED_DEBT: settled on credit; some or all of the total still owed
    - SETTLED_CASH / SETTLED_BANK: fully paid, final
    - DISCARDED: cancelled from UNSETTLED, final

    The legacy flattened fields (status, settlement_method) are derived from
    state and never stored. settlement_amount_cents is a cache of the sum of
    amount_paid_cents over Settled history rows; settlement_service keeps the
    two in lockstep.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("user_id", "order_id", name="uq_orders_user_order_id"),
        db.Index("ix_orders_user_state_created", "user_id", "state", "created_at"),
        db.Index("ix_orders_user_customer", "user_id", "customer_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)

    # Caller-supplied business id (e.g. "ORD-1718000000000") and display serial
    order_id = db.Column(db.String(64), nullable=False)
    serial_number = db.Column(db.String(64), nullable=False)
    shop_name = db.Column(db.String(255), nullable=True)

    # Customer reference plus the details printed on the bill
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=True)
    customer_address = db.Column(db.String(512), nullable=True)
    customer_contact = db.Column(db.String(64), nullable=True)

    # Amounts in cents
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_percentage = db.Column(db.Float, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    remarks = db.Column(db.Text, nullable=True)

    # Per-unit quantity totals, recomputed from items (never client-supplied)
    quantity_summary = db.Column(db.JSON, nullable=False, default=dict)

    # Settlement
    state = db.Column(db.String(16), nullable=False, default=STATE_UNSETTLED, index=True)
    settlement_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    settled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    discarded_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    # Delivery
    delivery_status = db.Column(db.String(16), nullable=False, default=DELIVERY_PENDING, index=True)
    delivery_partner_id = db.Column(db.String(64), nullable=True, index=True)
    delivery_assigned_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivery_on_the_way_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivery_completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivery_notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("orders", lazy=True))
    lines = db.relationship(
        "OrderItem",
        back_populates="order",
        order_by="OrderItem.position",
        cascade="all",
        lazy=True,
    )
    settlement_history = db.relationship(
        "SettlementEvent",
        back_populates="order",
        order_by="SettlementEvent.seq",
        cascade="all",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    # ------------------------------------------------------------------
    # Derived views of state
    # ------------------------------------------------------------------

    @property
    def items(self) -> list["OrderItem"]:
        return [line for line in self.lines if not line.is_free]

    @property
    def free_items(self) -> list["OrderItem"]:
        return [line for line in self.lines if line.is_free]

    @property
    def status(self) -> str:
        return "Unsettled" if self.state == STATE_UNSETTLED else "settled"

    @property
    def settlement_method(self) -> str | None:
        return _METHOD_BY_STATE[self.state]

    @property
    def is_debt(self) -> bool:
        return self.state == STATE_SETTLED_DEBT

    @property
    def is_discarded(self) -> bool:
        return self.state == STATE_DISCARDED

    @property
    def is_delivered(self) -> bool:
        return self.delivery_status == DELIVERY_DELIVERED

    @property
    def remaining_cents(self) -> int:
        return max(0, self.total_cents - self.settlement_amount_cents)

    def history_amount_paid_cents(self) -> int:
        return sum(
            ev.amount_paid_cents or 0
            for ev in self.settlement_history
            if ev.action == ACTION_SETTLED
        )

    def refresh_quantity_summary(self) -> dict:
        summary = {unit: 0 for unit in VALID_UNITS}
        for line in self.lines:
            unit = (line.unit or "").lower()
            if unit in summary:
                summary[unit] += line.quantity or 0
        self.quantity_summary = summary
        return summary

    def __repr__(self) -> str:
        return f"<Order id={self.id} order_id={self.order_id!r} state={self.state}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "order_id": self.order_id,
            "serial_number": self.serial_number,
            "shop_name": self.shop_name,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_address": self.customer_address,
            "customer_contact": self.customer_contact,
            "items": [line.to_dict() for line in self.items],
            "free_items": [line.to_dict() for line in self.free_items],
            "quantity_summary": dict(self.quantity_summary or {}),
            "subtotal_cents": self.subtotal_cents,
            "discount_percentage": self.discount_percentage,
            "total_cents": self.total_cents,
            "remarks": self.remarks,
            "state": self.state,
            "status": self.status,
            "settlement_method": self.settlement_method,
            "settlement_amount_cents": self.settlement_amount_cents,
            "remaining_cents": self.remaining_cents,
            "is_debt": self.is_debt,
            "is_discarded": self.is_discarded,
            "settled_at": to_utc_z(self.settled_at) if self.settled_at else None,
            "discarded_at": to_utc_z(self.discarded_at) if self.discarded_at else None,
            "settlement_history": [ev.to_dict() for ev in self.settlement_history],
            "delivery_status": self.delivery_status,
            "delivery_partner_id": self.delivery_partner_id,
            "delivery_assigned_at": to_utc_z(self.delivery_assigned_at) if self.delivery_assigned_at else None,
            "delivery_on_the_way_at": to_utc_z(self.delivery_on_the_way_at) if self.delivery_on_the_way_at else None,
            "delivery_completed_at": to_utc_z(self.delivery_completed_at) if self.delivery_completed_at else None,
            "delivery_notes": self.delivery_notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class OrderItem(db.Model):
    """
    Line item on an order (paid or free).

    Rows are written once at order creation. Discard replays these exact rows
    to restore stock, so they are never edited afterwards.
    """
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_pk = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    # Optional catalog reference; ad-hoc lines carry only a name
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit = db.Column(db.String(16), nullable=True)
    is_free = db.Column(db.Boolean, nullable=False, default=False)

    order = db.relationship("Order", back_populates="lines")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit": self.unit,
        }


class SettlementEvent(db.Model):
    """
    Append-only settlement history for an order.

    ACTIONS:
    - Created: order created (always the first row)
    - Settled: settlement or partial payment (amount 0 when marked as Debt)
    - Discarded: order cancelled

    IMMUTABLE: Rows are never updated or deleted (enforced by ORM listeners below).
    """
    __tablename__ = "settlement_events"
    __table_args__ = (
        db.UniqueConstraint("order_pk", "seq", name="uq_settlement_events_order_seq"),
        db.Index("ix_settlement_events_order_at", "order_pk", "at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_pk = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    # Position within the order's history (0 = Created)
    seq = db.Column(db.Integer, nullable=False)

    action = db.Column(db.String(16), nullable=False, index=True)
    method = db.Column(db.String(16), nullable=True)
    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    note = db.Column(db.String(255), nullable=True)
    actor_user_id = db.Column(db.String(64), nullable=True)

    # Business time of the action
    at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    order = db.relationship("Order", back_populates="settlement_history")

    def to_dict(self) -> dict:
        return {
            "action": self.action,
            "method": self.method,
            "amount_paid_cents": self.amount_paid_cents,
            "note": self.note,
            "at": to_utc_z(self.at),
        }


@event.listens_for(SettlementEvent, "before_update")
def _block_settlement_event_update(mapper, connection, target):
    raise ImmutableRecordError(f"Settlement history row {target.id} is append-only")


@event.listens_for(SettlementEvent, "before_delete")
def _block_settlement_event_delete(mapper, connection, target):
    raise ImmutableRecordError(f"Settlement history row {target.id} cannot be deleted")

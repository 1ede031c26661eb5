# Overview: Order queries and the delivery status flow.

from __future__ import annotations

from typing import Optional

from flask import current_app

from ..extensions import db
from ..models import Order
from ..models.orders import (
    DELIVERY_DELIVERED,
    DELIVERY_ON_THE_WAY,
    DELIVERY_PENDING,
    STATE_UNSETTLED,
    VALID_DELIVERY_STATUSES,
)
from ..permissions import OwnershipPolicy
from ..validation import ConflictError, NotFoundError, ValidationError, require_text
from shopledger.time_utils import utcnow
from .concurrency import begin_write_transaction, lock_for_update, run_guarded


# Allowed forward moves; anything else (including repeats) is a conflict
_DELIVERY_TRANSITIONS = {
    DELIVERY_PENDING: {DELIVERY_ON_THE_WAY, DELIVERY_DELIVERED},
    DELIVERY_ON_THE_WAY: {DELIVERY_DELIVERED},
    DELIVERY_DELIVERED: set(),
}


def list_orders(user_id: str, status: Optional[str] = None) -> list[Order]:
    """
    List a shop's orders, newest first.

    status filter (case-insensitive):
    - "Unsettled": only UNSETTLED orders
    - "settled": every other order, discarded ones included
    """
    if not user_id:
        raise ValidationError("user_id is required")

    query = db.session.query(Order).filter(Order.user_id == user_id)

    if status:
        wanted = status.strip().lower()
        if wanted == "unsettled":
            query = query.filter(Order.state == STATE_UNSETTLED)
        elif wanted == "settled":
            query = query.filter(Order.state != STATE_UNSETTLED)
        else:
            raise ValidationError("status must be Unsettled or settled")

    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def get_order(
    user_id: str,
    order_id: str,
    *,
    actor_id: Optional[str] = None,
    policy: Optional[OwnershipPolicy] = None,
) -> Order:
    order = db.session.query(Order).filter_by(user_id=user_id, order_id=order_id).first()
    if not order:
        raise NotFoundError("Order not found.")
    (policy or OwnershipPolicy()).require(order.user_id, actor_id if actor_id is not None else user_id)
    return order


def update_delivery_status(data: dict, *, policy: Optional[OwnershipPolicy] = None) -> Order:
    """
    Move an order along Pending -> On the Way -> Delivered.

    The first update claims the order for partner_id; later updates from a
    different partner are rejected. Discarded orders cannot be delivered.
    Delivery never changes settlement state, stock or balances.
    """
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    fields = require_text(data, ["order_id", "user_id", "partner_id", "status"])
    new_status = fields["status"]
    if new_status not in VALID_DELIVERY_STATUSES or new_status == DELIVERY_PENDING:
        raise ValidationError(
            "Invalid delivery status.",
            details={"allowed": [DELIVERY_ON_THE_WAY, DELIVERY_DELIVERED]},
        )
    partner_id = fields["partner_id"]
    note = data.get("note")

    def _op():
        begin_write_transaction()
        order = (
            lock_for_update(
                db.session.query(Order).filter_by(user_id=fields["user_id"], order_id=fields["order_id"])
            )
            .populate_existing()
            .first()
        )
        if not order:
            raise NotFoundError("Order not found.")
        (policy or OwnershipPolicy()).require(order.user_id, data.get("actor_id") or fields["user_id"])

        if order.is_discarded:
            raise ConflictError("Discarded orders cannot be delivered.")
        if order.delivery_partner_id and order.delivery_partner_id != partner_id:
            raise ConflictError(
                "Order is assigned to another delivery partner.",
                details={"delivery_partner_id": order.delivery_partner_id},
            )
        if new_status not in _DELIVERY_TRANSITIONS[order.delivery_status]:
            raise ConflictError(
                f"Cannot move delivery from {order.delivery_status} to {new_status}.",
                details={"delivery_status": order.delivery_status},
            )

        now = utcnow()
        if not order.delivery_partner_id:
            order.delivery_partner_id = partner_id
            order.delivery_assigned_at = now
        if new_status == DELIVERY_ON_THE_WAY:
            order.delivery_on_the_way_at = now
        else:
            order.delivery_completed_at = now
        if note:
            order.delivery_notes = str(note).strip()
        order.delivery_status = new_status

        db.session.commit()
        return order

    order = run_guarded(_op)
    current_app.logger.info(
        "Order %s delivery status -> %s (partner %s)", order.order_id, order.delivery_status, partner_id
    )
    return order

# Overview: Order settlement engine; applies stock, balance and history changes as one unit of work.

"""
Order Settlement Engine

Every action below touches up to three records (the order, product stock and
the customer's balance) plus the order's settlement history. Each action runs
in a single database transaction: all writes commit together or none do.

TRANSITIONS:
- create:      -> UNSETTLED           stock -= items, debit/total_sales += total
- discard:     UNSETTLED -> DISCARDED stock += items, debit/total_sales -= total
- settle:      UNSETTLED -> SETTLED_DEBT (method Debt, nothing paid)
               UNSETTLED -> SETTLED_CASH/BANK or SETTLED_DEBT (Cash/Bank payment)
- settleDebt:  SETTLED_DEBT -> SETTLED_CASH/BANK or stays SETTLED_DEBT

Anything else is a guard failure and raises ConflictError; the order is left
untouched. Concurrent transitions on the same order are detected through the
order's version_id and the loser receives a ConflictError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Order, OrderItem
from ..models.inventory import VALID_UNITS
from ..models.orders import (
    ACTION_CREATED,
    ACTION_DISCARDED,
    ACTION_SETTLED,
    METHOD_DEBT,
    PAYMENT_METHODS,
    SETTLE_METHODS,
    STATE_DISCARDED,
    STATE_SETTLED_DEBT,
    STATE_UNSETTLED,
    paid_state_for,
)
from ..permissions import OwnershipPolicy
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    coerce_amount_cents,
    coerce_int,
    require_text,
)
from shopledger.time_utils import utcnow
from . import customer_service, inventory_service, notification_service
from .concurrency import begin_write_transaction, lock_for_update, run_guarded, run_with_retry
from .history_service import append_settlement_event, assert_history_consistent


# =============================================================================
# ORDER ACTIONS (CONSTANTS)
# =============================================================================

ACTION_DISCARD = "discard"
ACTION_SETTLE = "settle"
ACTION_SETTLE_DEBT = "settleDebt"

VALID_ACTIONS = [ACTION_DISCARD, ACTION_SETTLE, ACTION_SETTLE_DEBT]


@dataclass(frozen=True)
class ItemInput:
    product_id: Optional[int]
    product_name: Optional[str]
    quantity: int
    unit: Optional[str]
    is_free: bool


@dataclass
class OrderDraft:
    user_id: str
    order_id: str
    serial_number: str
    customer_id: int
    customer_name: str
    customer_address: str
    customer_contact: str
    shop_name: Optional[str]
    subtotal_cents: int
    discount_percentage: float
    total_cents: int
    remarks: Optional[str]
    items: list[ItemInput] = field(default_factory=list)


# =============================================================================
# INPUT PARSING
# =============================================================================

def _parse_items(raw, field_name: str, *, is_free: bool) -> list[ItemInput]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError(f"{field_name} must be a list")

    parsed = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ValidationError(f"{field_name}[{index}] must be an object")

        quantity = coerce_int(item.get("quantity"), f"{field_name}[{index}].quantity")
        if quantity <= 0:
            raise ValidationError(f"{field_name}[{index}].quantity must be > 0")

        product_id = item.get("product_id")
        if product_id in (None, ""):
            product_id = None
        else:
            product_id = coerce_int(product_id, f"{field_name}[{index}].product_id")

        name = item.get("product_name")
        name = str(name).strip() if name is not None else None
        if not name and product_id is None:
            raise ValidationError(f"{field_name}[{index}] needs a product_id or product_name")

        unit = item.get("unit")
        unit = str(unit).strip().lower() if unit not in (None, "") else None
        if unit is not None and unit not in VALID_UNITS:
            raise ValidationError(f"{field_name}[{index}].unit must be one of {VALID_UNITS}")

        parsed.append(ItemInput(
            product_id=product_id,
            product_name=name or None,
            quantity=quantity,
            unit=unit,
            is_free=is_free,
        ))
    return parsed


def _parse_discount(value) -> float:
    if value in (None, ""):
        return 0.0
    if isinstance(value, bool):
        raise ValidationError("discount_percentage must be a number")
    try:
        pct = float(value)
    except (TypeError, ValueError):
        raise ValidationError("discount_percentage must be a number")
    if not 0 <= pct <= 100:
        raise ValidationError("discount_percentage must be between 0 and 100")
    return pct


def parse_order_payload(data: dict) -> OrderDraft:
    """Validate a create-order request body."""
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    ids = require_text(data, ["user_id", "order_id", "serial_number"],
                       "user_id, order_id and serial_number are required.")
    customer = require_text(
        data,
        ["customer_id", "customer_name", "customer_address", "customer_contact"],
        "Customer details are incomplete.",
    )

    items = _parse_items(data.get("items"), "items", is_free=False)
    if not items:
        raise ValidationError("At least one bill item is required.")
    free_items = _parse_items(data.get("free_items"), "free_items", is_free=True)

    shop_name = data.get("shop_name")
    remarks = data.get("remarks")

    return OrderDraft(
        user_id=ids["user_id"],
        order_id=ids["order_id"],
        serial_number=ids["serial_number"],
        customer_id=coerce_int(customer["customer_id"], "customer_id"),
        customer_name=customer["customer_name"],
        customer_address=customer["customer_address"],
        customer_contact=customer["customer_contact"],
        shop_name=str(shop_name).strip() if shop_name else None,
        subtotal_cents=coerce_amount_cents(data.get("subtotal_cents", 0), "subtotal_cents"),
        discount_percentage=_parse_discount(data.get("discount_percentage")),
        total_cents=coerce_amount_cents(data.get("total_cents"), "total_cents"),
        remarks=str(remarks).strip() if remarks else None,
        items=items + free_items,
    )


# =============================================================================
# ORDER CREATION
# =============================================================================

def create_order(data: dict) -> Order:
    """
    Create an order and apply its stock and balance effects.

    - Order persisted UNSETTLED with a single Created history row
    - Stock decremented for every item and free item with a product reference
    - Customer debit and total_sales increased by the order total
    """
    draft = parse_order_payload(data)

    def _op():
        customer = customer_service.get_customer(draft.user_id, draft.customer_id)

        existing = db.session.query(Order.id).filter_by(
            user_id=draft.user_id, order_id=draft.order_id
        ).first()
        if existing:
            raise ConflictError(f"Order {draft.order_id} already exists.")

        products = inventory_service.resolve_products(
            draft.user_id,
            {item.product_id for item in draft.items if item.product_id is not None},
        )

        now = utcnow()
        order = Order(
            user_id=draft.user_id,
            order_id=draft.order_id,
            serial_number=draft.serial_number,
            shop_name=draft.shop_name,
            customer_id=customer.id,
            customer_name=draft.customer_name,
            customer_address=draft.customer_address,
            customer_contact=draft.customer_contact,
            subtotal_cents=draft.subtotal_cents,
            discount_percentage=draft.discount_percentage,
            total_cents=draft.total_cents,
            remarks=draft.remarks,
            state=STATE_UNSETTLED,
            settlement_amount_cents=0,
            created_at=now,
        )

        for position, item in enumerate(draft.items):
            product = products.get(item.product_id) if item.product_id is not None else None
            order.lines.append(OrderItem(
                position=position,
                product_id=item.product_id,
                product_name=item.product_name or product.name,
                quantity=item.quantity,
                unit=item.unit or (product.unit if product else None),
                is_free=item.is_free,
            ))
        order.refresh_quantity_summary()

        deltas = inventory_service.stock_deltas(order.lines, -1)
        if current_app.config.get("ENFORCE_STOCK_ON_CREATE"):
            inventory_service.check_available(draft.user_id, deltas)

        db.session.add(order)
        append_settlement_event(order, action=ACTION_CREATED, actor_user_id=draft.user_id, at=now)

        inventory_service.apply_stock_deltas(draft.user_id, deltas)
        if order.total_cents > 0:
            customer_service.apply_balance_delta(
                customer.id,
                debit_cents=order.total_cents,
                total_sales_cents=order.total_cents,
            )

        _commit(order)
        return order

    try:
        order = run_with_retry(_op)
    except IntegrityError as exc:
        # Lost a race on uq_orders_user_order_id
        raise ConflictError(f"Order {draft.order_id} already exists.") from exc

    current_app.logger.info(
        "Order %s created for shop %s (total_cents=%s)", order.order_id, order.user_id, order.total_cents
    )
    notification_service.dispatch_order_event(order, notification_service.EVENT_ORDER_CREATED)
    return order


# =============================================================================
# TRANSITIONS
# =============================================================================

def discard_order(
    *,
    order_id: str,
    user_id: str,
    actor_id: Optional[str] = None,
    expected_version=None,
    policy: Optional[OwnershipPolicy] = None,
) -> Order:
    """
    Discard an UNSETTLED order, reversing its stock and balance effects.

    Stock is restored from the order's own stored lines. Credit is untouched:
    only the debit and total_sales added at creation are reversed.
    """
    def _op():
        begin_write_transaction()
        order = _load_order_for_update(order_id, user_id, actor_id, policy)
        _check_expected_version(order, expected_version)

        if order.state != STATE_UNSETTLED:
            raise ConflictError("Only Unsettled orders can be discarded.", details=_state_details(order))
        if order.is_delivered:
            raise ConflictError("Delivered orders cannot be discarded.", details=_state_details(order))

        inventory_service.apply_stock_deltas(order.user_id, inventory_service.stock_deltas(order.lines, +1))
        if order.customer_id and order.total_cents:
            customer_service.apply_balance_delta(
                order.customer_id,
                debit_cents=-order.total_cents,
                total_sales_cents=-order.total_cents,
            )

        now = utcnow()
        order.state = STATE_DISCARDED
        order.discarded_at = now
        order.settled_at = None
        order.settlement_amount_cents = 0
        append_settlement_event(
            order,
            action=ACTION_DISCARDED,
            amount_paid_cents=0,
            actor_user_id=actor_id or user_id,
            at=now,
        )

        _commit(order)
        return order

    order = run_guarded(_op)
    current_app.logger.info("Order %s discarded", order.order_id)
    notification_service.dispatch_order_event(order, notification_service.EVENT_ORDER_DISCARDED)
    return order


def settle_order(
    *,
    order_id: str,
    user_id: str,
    method: Optional[str],
    amount_cents=None,
    actor_id: Optional[str] = None,
    expected_version=None,
    policy: Optional[OwnershipPolicy] = None,
) -> Order:
    """
    First settlement of an UNSETTLED order.

    method=Debt marks the whole total as owed (no payment, amount 0 row).
    method=Cash or Bank/UPI applies a payment: fully paid orders take that
    method, partially paid ones become Debt-flagged.
    """
    if method not in SETTLE_METHODS:
        raise ValidationError("Invalid settlement method.", details={"allowed": SETTLE_METHODS})

    pay_amount = None
    if method != METHOD_DEBT:
        pay_amount = _parse_payment_amount(amount_cents)

    def _op():
        begin_write_transaction()
        order = _load_order_for_update(order_id, user_id, actor_id, policy)
        _check_expected_version(order, expected_version)

        if order.state != STATE_UNSETTLED:
            raise ConflictError(_not_settleable_message(order), details=_state_details(order))

        now = utcnow()
        if method == METHOD_DEBT:
            order.state = STATE_SETTLED_DEBT
            order.settled_at = now
            append_settlement_event(
                order,
                action=ACTION_SETTLED,
                method=METHOD_DEBT,
                amount_paid_cents=0,
                note="Marked as Debt",
                actor_user_id=actor_id or user_id,
                at=now,
            )
        else:
            _apply_payment(
                order,
                pay_amount,
                method,
                actor_id=actor_id or user_id,
                at=now,
                note_full="Fully settled",
                note_partial="Partial payment, remaining kept as Debt",
            )

        _commit(order)
        return order

    order = run_guarded(_op)
    current_app.logger.info(
        "Order %s settled via %s (paid_cents=%s, state=%s)",
        order.order_id, method, pay_amount or 0, order.state,
    )
    notification_service.dispatch_order_event(order, notification_service.EVENT_ORDER_SETTLED)
    return order


def settle_debt(
    *,
    order_id: str,
    user_id: str,
    method: Optional[str],
    amount_cents=None,
    actor_id: Optional[str] = None,
    expected_version=None,
    policy: Optional[OwnershipPolicy] = None,
) -> Order:
    """
    Record a Cash or Bank/UPI payment against a Debt-flagged order.

    The order moves to the payment method's settled state only once the
    cumulative amount paid reaches the total; until then it stays Debt.
    """
    if method not in PAYMENT_METHODS:
        raise ValidationError("Invalid settlement method for Debt.", details={"allowed": PAYMENT_METHODS})

    pay_amount = _parse_payment_amount(amount_cents)

    def _op():
        begin_write_transaction()
        order = _load_order_for_update(order_id, user_id, actor_id, policy)
        _check_expected_version(order, expected_version)

        if order.state != STATE_SETTLED_DEBT:
            raise ConflictError("Only Debt orders can be settled from the Debt tab.", details=_state_details(order))

        _apply_payment(
            order,
            pay_amount,
            method,
            actor_id=actor_id or user_id,
            at=utcnow(),
            note_full="Debt fully settled",
            note_partial="Partial payment recorded, still Debt",
        )

        _commit(order)
        return order

    order = run_guarded(_op)
    current_app.logger.info(
        "Debt payment on order %s via %s (paid_cents=%s, state=%s)",
        order.order_id, method, pay_amount, order.state,
    )
    notification_service.dispatch_order_event(order, notification_service.EVENT_ORDER_DEBT_PAYMENT)
    return order


def apply_order_action(data: dict, *, policy: Optional[OwnershipPolicy] = None) -> Order:
    """Dispatch a PATCH order-action body to the matching transition."""
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    fields = require_text(data, ["action", "order_id", "user_id"], "order_id, user_id and action are required.")
    action = fields["action"]

    common = {
        "order_id": fields["order_id"],
        "user_id": fields["user_id"],
        "actor_id": data.get("actor_id"),
        "expected_version": data.get("expected_version"),
        "policy": policy,
    }

    if action == ACTION_DISCARD:
        return discard_order(**common)
    if action == ACTION_SETTLE:
        return settle_order(method=data.get("method"), amount_cents=data.get("amount_cents"), **common)
    if action == ACTION_SETTLE_DEBT:
        return settle_debt(method=data.get("method"), amount_cents=data.get("amount_cents"), **common)

    raise ValidationError("Invalid action.", details={"allowed": VALID_ACTIONS})


# =============================================================================
# INTERNAL HELPERS
# =============================================================================

def _parse_payment_amount(amount_cents) -> int:
    if amount_cents in (None, ""):
        raise ValidationError("Payment amount must be greater than 0.")
    return coerce_amount_cents(amount_cents, "amount_cents", allow_zero=False)


def _load_order_for_update(
    order_id: str,
    user_id: str,
    actor_id: Optional[str],
    policy: Optional[OwnershipPolicy],
) -> Order:
    order = (
        lock_for_update(db.session.query(Order).filter_by(user_id=user_id, order_id=order_id))
        .populate_existing()
        .first()
    )
    if not order:
        raise NotFoundError("Order not found.")

    (policy or OwnershipPolicy()).require(order.user_id, actor_id if actor_id is not None else user_id)
    return order


def _check_expected_version(order: Order, expected_version) -> None:
    if expected_version in (None, ""):
        return
    expected = coerce_int(expected_version, "expected_version")
    if expected != order.version_id:
        raise ConflictError(
            "Order has changed since it was loaded; reload and try again.",
            details={"expected_version": expected, "current_version": order.version_id},
        )


def _apply_payment(
    order: Order,
    pay_amount: int,
    method: str,
    *,
    actor_id: Optional[str],
    at,
    note_full: str,
    note_partial: str,
) -> customer_service.PaymentAllocation:
    customer = customer_service.lock_customer(order.customer_id) if order.customer_id else None

    allocation = customer_service.allocate_payment(
        pay_amount_cents=pay_amount,
        bill_total_cents=order.total_cents,
        previously_paid_cents=order.settlement_amount_cents or 0,
        current_debit_cents=customer.debit_cents if customer else 0,
    )
    if customer:
        customer_service.apply_payment_allocation(customer.id, allocation)

    order.state = paid_state_for(method) if allocation.fully_settled else STATE_SETTLED_DEBT
    order.settled_at = at
    append_settlement_event(
        order,
        action=ACTION_SETTLED,
        method=method,
        amount_paid_cents=pay_amount,
        note=note_full if allocation.fully_settled else note_partial,
        actor_user_id=actor_id,
        at=at,
    )
    return allocation


def _commit(order: Order) -> None:
    assert_history_consistent(order)
    db.session.flush()
    db.session.commit()


def _not_settleable_message(order: Order) -> str:
    if order.state == STATE_SETTLED_DEBT:
        return "Order is already marked as Debt; record payments with settleDebt."
    if order.state == STATE_DISCARDED:
        return "Discarded orders cannot be settled."
    return "Order is already settled."


def _state_details(order: Order) -> dict:
    return {
        "state": order.state,
        "settlement_method": order.settlement_method,
        "delivery_status": order.delivery_status,
        "version_id": order.version_id,
    }

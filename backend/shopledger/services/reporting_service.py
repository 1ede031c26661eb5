# Overview: Read-only ledger projection and sales summary built from orders and settlement history.

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Customer, Order, SettlementEvent
from ..models.inventory import VALID_UNITS
from ..models.orders import (
    ACTION_DISCARDED,
    ACTION_SETTLED,
    METHOD_BANK,
    METHOD_CASH,
    METHOD_DEBT,
    STATE_DISCARDED,
)
from ..validation import ValidationError
from shopledger.time_utils import as_naive_utc, inclusive_range, to_utc_z, within_range
from .customer_service import get_customer


ENTRY_SALE = "Sale"
ENTRY_PAYMENT = "Payment"
ENTRY_ADJUSTMENT = "Adjustment"


def _empty_quantities() -> dict[str, int]:
    return {unit: 0 for unit in VALID_UNITS}


def _add_quantities(target: dict[str, int], summary: Optional[dict]) -> None:
    for unit in VALID_UNITS:
        target[unit] += int((summary or {}).get(unit) or 0)


def _ledger_entry(
    *,
    entry_id: str,
    entry_type: str,
    at: datetime,
    order: Order,
    note: str,
    method: Optional[str] = None,
    debit_cents: int = 0,
    credit_cents: int = 0,
) -> dict:
    return {
        "id": entry_id,
        "type": entry_type,
        "at": to_utc_z(at),
        "order_id": order.order_id,
        "serial_number": order.serial_number,
        "method": method,
        "note": note,
        "debit_cents": debit_cents,
        "credit_cents": credit_cents,
    }


def customer_ledger(
    user_id: str,
    customer_id,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> dict:
    """
    Chronological ledger for one customer.

    Entries, within the inclusive [start, end] window:
    - Sale: one per order, at creation (debit = total)
    - Payment: one per Settled row with amount > 0 (credit = amount)
    - Adjustment: one per Discarded row (credit = total), and a zero-value
      one per Debt flagging row

    Pure fold over stored rows: the customer's balances are read, never written.
    Totals come from the customer row, which is authoritative.
    """
    if not user_id or customer_id in (None, ""):
        raise ValidationError("user_id and customer_id are required")

    customer = get_customer(user_id, customer_id)
    start, end_limit = inclusive_range(start, end)

    orders = (
        db.session.query(Order)
        .options(selectinload(Order.settlement_history))
        .filter(Order.user_id == user_id, Order.customer_id == customer.id)
        .all()
    )

    keyed = []
    for order in orders:
        if within_range(order.created_at, start, end_limit):
            keyed.append(((as_naive_utc(order.created_at), order.id, -1), _ledger_entry(
                entry_id=f"{order.order_id}-sale",
                entry_type=ENTRY_SALE,
                at=order.created_at,
                order=order,
                note=f"Bill created (Order #{order.order_id})",
                debit_cents=order.total_cents,
            )))

        for ev in order.settlement_history:
            if not within_range(ev.at, start, end_limit):
                continue
            sort_key = (as_naive_utc(ev.at), order.id, ev.seq)

            if ev.action == ACTION_SETTLED:
                if ev.amount_paid_cents > 0:
                    keyed.append((sort_key, _ledger_entry(
                        entry_id=f"{order.order_id}-settle-{ev.seq}",
                        entry_type=ENTRY_PAYMENT,
                        at=ev.at,
                        order=order,
                        method=ev.method,
                        note=f"Payment ({ev.method}) for Order #{order.order_id}",
                        credit_cents=ev.amount_paid_cents,
                    )))
                elif ev.method == METHOD_DEBT:
                    keyed.append((sort_key, _ledger_entry(
                        entry_id=f"{order.order_id}-debt-{ev.seq}",
                        entry_type=ENTRY_ADJUSTMENT,
                        at=ev.at,
                        order=order,
                        method=METHOD_DEBT,
                        note=ev.note or "Marked as Debt",
                    )))
            elif ev.action == ACTION_DISCARDED:
                keyed.append((sort_key, _ledger_entry(
                    entry_id=f"{order.order_id}-discard-{ev.seq}",
                    entry_type=ENTRY_ADJUSTMENT,
                    at=ev.at,
                    order=order,
                    note=f"Bill discarded (Order #{order.order_id})",
                    credit_cents=order.total_cents,
                )))

    keyed.sort(key=lambda pair: pair[0])
    ledger = [entry for _, entry in keyed]

    return {
        "customer": customer.summary_dict(),
        "ledger": ledger,
        "totals": {
            "debit_cents": customer.debit_cents,
            "credit_cents": customer.credit_cents,
            "net_balance_cents": customer.net_balance_cents,
            "period_debit_cents": sum(e["debit_cents"] for e in ledger),
            "period_credit_cents": sum(e["credit_cents"] for e in ledger),
        },
    }


def sales_summary(
    user_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> dict:
    """
    Aggregate sales for a shop over an inclusive date window.

    Discarded orders are excluded. The window selects orders by creation
    time; cash and bank receipts are the Settled rows of those orders that
    also fall inside the window, bucketed by the day they were received.
    Debit/credit totals are the shop-wide customer balances and ignore the
    window.
    """
    if not user_id:
        raise ValidationError("user_id is required")

    start, end_limit = inclusive_range(start, end)
    daily: dict[str, dict] = {}

    def _day(dt: datetime) -> dict:
        key = as_naive_utc(dt).date().isoformat()
        if key not in daily:
            daily[key] = {
                "date": key,
                "total_sales_cents": 0,
                "total_orders": 0,
                "quantities": _empty_quantities(),
                "cash_received_cents": 0,
                "bank_received_cents": 0,
            }
        return daily[key]

    order_query = db.session.query(Order).filter(
        Order.user_id == user_id,
        Order.state != STATE_DISCARDED,
    )
    if start is not None:
        order_query = order_query.filter(Order.created_at >= start)
    if end_limit is not None:
        order_query = order_query.filter(Order.created_at < end_limit)

    total_sales = 0
    total_orders = 0
    quantities = _empty_quantities()
    for order in order_query.all():
        day = _day(order.created_at)
        total_sales += order.total_cents
        total_orders += 1
        day["total_sales_cents"] += order.total_cents
        day["total_orders"] += 1
        _add_quantities(quantities, order.quantity_summary)
        _add_quantities(day["quantities"], order.quantity_summary)

    payment_query = (
        db.session.query(SettlementEvent)
        .join(Order, Order.id == SettlementEvent.order_pk)
        .filter(
            Order.user_id == user_id,
            Order.state != STATE_DISCARDED,
            SettlementEvent.action == ACTION_SETTLED,
            SettlementEvent.method.in_([METHOD_CASH, METHOD_BANK]),
        )
    )
    if start is not None:
        payment_query = payment_query.filter(Order.created_at >= start, SettlementEvent.at >= start)
    if end_limit is not None:
        payment_query = payment_query.filter(Order.created_at < end_limit, SettlementEvent.at < end_limit)

    cash_received = 0
    bank_received = 0
    for ev in payment_query.all():
        day = _day(ev.at)
        if ev.method == METHOD_CASH:
            cash_received += ev.amount_paid_cents
            day["cash_received_cents"] += ev.amount_paid_cents
        else:
            bank_received += ev.amount_paid_cents
            day["bank_received_cents"] += ev.amount_paid_cents

    overall_debit, overall_credit = db.session.query(
        func.coalesce(func.sum(Customer.debit_cents), 0),
        func.coalesce(func.sum(Customer.credit_cents), 0),
    ).filter(Customer.user_id == user_id).one()
    overall_debit = int(overall_debit or 0)
    overall_credit = int(overall_credit or 0)
    net_receivable = overall_debit - overall_credit

    return {
        "start": to_utc_z(start) if start else None,
        "end": to_utc_z(end) if end else None,
        "total_sales_cents": total_sales,
        "total_orders": total_orders,
        "quantities": quantities,
        "payment_breakdown": {
            "cash_cents": cash_received,
            "bank_cents": bank_received,
            "outstanding_debt_cents": max(0, net_receivable),
        },
        "overall_debit_cents": overall_debit,
        "overall_credit_cents": overall_credit,
        "net_receivable_cents": net_receivable,
        "daily": [daily[key] for key in sorted(daily)],
    }

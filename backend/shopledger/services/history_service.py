# Overview: Append-only settlement history for orders.

"""
Settlement History Invariants (authoritative)

- Append-only: rows are never updated or deleted.
- The first row of every order is Created.
- Exactly one row per transition, written in the same transaction as it.
- order.settlement_amount_cents == sum(amount_paid_cents of Settled rows).
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..models import Order, SettlementEvent
from ..models.orders import ACTION_CREATED, ACTION_SETTLED, VALID_STATES
from shopledger.time_utils import utcnow


class HistoryIntegrityError(RuntimeError):
    """Raised when an order's history and its cached settlement amount disagree."""


def append_settlement_event(
    order: Order,
    *,
    action: str,
    method: Optional[str] = None,
    amount_paid_cents: int = 0,
    note: Optional[str] = None,
    actor_user_id: Optional[str] = None,
    at: Optional[datetime] = None,
) -> SettlementEvent:
    """
    Append one history row to an order.

    Settled rows also advance order.settlement_amount_cents by the same
    amount, which is the only place that cache is increased.
    """
    ev = SettlementEvent(
        seq=len(order.settlement_history),
        action=action,
        method=method,
        amount_paid_cents=amount_paid_cents,
        note=note,
        actor_user_id=actor_user_id,
        at=at or utcnow(),
    )
    order.settlement_history.append(ev)

    if action == ACTION_SETTLED:
        order.settlement_amount_cents = (order.settlement_amount_cents or 0) + amount_paid_cents

    return ev


def history_problems(order: Order) -> list[str]:
    """Return human-readable invariant violations for an order (empty when consistent)."""
    problems = []
    history = list(order.settlement_history)

    if order.state not in VALID_STATES:
        problems.append(f"unknown state {order.state!r}")

    if not history or history[0].action != ACTION_CREATED:
        problems.append("first history entry is not Created")

    seqs = [ev.seq for ev in history]
    if seqs != list(range(len(history))):
        problems.append(f"history sequence is not contiguous: {seqs}")

    paid = order.history_amount_paid_cents()
    if paid != (order.settlement_amount_cents or 0):
        problems.append(
            f"settlement_amount_cents={order.settlement_amount_cents} but history sums to {paid}"
        )

    return problems


def assert_history_consistent(order: Order) -> None:
    problems = history_problems(order)
    if problems:
        raise HistoryIntegrityError(f"Order {order.order_id}: " + "; ".join(problems))

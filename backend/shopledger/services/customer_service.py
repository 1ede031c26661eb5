# Overview: Customer balance ledger and the payment allocation rule.

"""
Customer Balance Service

Keeps each customer's running debit (owed to the shop), credit (overpaid,
refundable) and lifetime sales.

BALANCE INVARIANTS:
- A payment never removes more debit than the customer carries, and never
  more than is still owed on the order being paid.
- Whatever part of a payment is not applied to debit becomes credit; money
  is never lost.
- Balance writes are atomic SQL increments inside the caller's transaction.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import update

from ..extensions import db
from ..models import Customer
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    coerce_int,
    validate_payload,
)
from .concurrency import lock_for_update, run_with_retry


CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "name", "shop_name", "shop_address", "contacts",
        "latitude", "longitude", "remarks",
    }),
    required_on_create=frozenset({"name", "shop_name", "shop_address", "contacts"}),
)


@dataclass(frozen=True)
class PaymentAllocation:
    pay_amount_cents: int
    applied_to_debit_cents: int
    overflow_to_credit_cents: int
    total_paid_cents: int
    fully_settled: bool


def allocate_payment(
    *,
    pay_amount_cents: int,
    bill_total_cents: int,
    previously_paid_cents: int,
    current_debit_cents: int,
) -> PaymentAllocation:
    """
    Split a payment between the customer's debit and credit.

    remaining = max(0, bill_total - previously_paid)
    applied_to_debit = min(pay, remaining, current_debit)
    overflow = pay - applied_to_debit            (goes to credit)
    fully settled iff previously_paid + pay >= bill_total

    The clamp to current_debit matters when the customer's debit was already
    reduced below what this order still owes; the excess still lands in credit.
    """
    if pay_amount_cents < 0:
        raise ValidationError("Payment amount must be positive")

    remaining = max(0, bill_total_cents - previously_paid_cents)
    applied = min(pay_amount_cents, remaining, max(0, current_debit_cents))
    overflow = pay_amount_cents - applied
    total_paid = previously_paid_cents + pay_amount_cents

    return PaymentAllocation(
        pay_amount_cents=pay_amount_cents,
        applied_to_debit_cents=applied,
        overflow_to_credit_cents=overflow,
        total_paid_cents=total_paid,
        fully_settled=total_paid >= bill_total_cents,
    )


def lock_customer(customer_id: int) -> Customer | None:
    """Read a customer row for update, refreshing any stale copy in the session."""
    return (
        lock_for_update(db.session.query(Customer).filter_by(id=customer_id))
        .populate_existing()
        .first()
    )


def apply_balance_delta(
    customer_id: int,
    *,
    debit_cents: int = 0,
    credit_cents: int = 0,
    total_sales_cents: int = 0,
) -> None:
    """
    Apply one combined balance delta as a single atomic UPDATE.

    Does not commit: the settlement transaction owns the write.
    """
    if not (debit_cents or credit_cents or total_sales_cents):
        return
    db.session.execute(
        update(Customer)
        .where(Customer.id == customer_id)
        .values(
            debit_cents=Customer.debit_cents + debit_cents,
            credit_cents=Customer.credit_cents + credit_cents,
            total_sales_cents=Customer.total_sales_cents + total_sales_cents,
        )
    )


def apply_payment_allocation(customer_id: int, allocation: PaymentAllocation) -> None:
    apply_balance_delta(
        customer_id,
        debit_cents=-allocation.applied_to_debit_cents,
        credit_cents=allocation.overflow_to_credit_cents,
    )


def get_customer(user_id: str, customer_id) -> Customer:
    customer_id = coerce_int(customer_id, "customer_id")
    customer = db.session.query(Customer).filter_by(id=customer_id, user_id=user_id).first()
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


def list_customers(user_id: str) -> list[Customer]:
    return db.session.query(Customer).filter_by(user_id=user_id).order_by(Customer.name.asc()).all()


def create_customer(user_id: str, payload: dict) -> Customer:
    """Create a customer with zero balances."""
    if not user_id:
        raise ValidationError("user_id is required")

    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY)

    contacts = patch.get("contacts")
    if isinstance(contacts, str):
        contacts = [contacts]
    if not isinstance(contacts, list):
        raise ValidationError("contacts must be a list of phone numbers")
    contacts = [str(c).strip() for c in contacts if c is not None and str(c).strip()]
    if not contacts:
        raise ValidationError("At least one contact number is required")
    patch["contacts"] = contacts

    def _op():
        customer = Customer(user_id=user_id, **patch)
        db.session.add(customer)
        db.session.commit()
        return customer

    return run_with_retry(_op)

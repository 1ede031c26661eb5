# Overview: Product stock ledger; atomic stock movements for orders, restocks and empty-stock resets.

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import OrderItem, Product, RestockEvent
from ..models.restocks import NOTE_EMPTY_STOCK, NOTE_RESTOCK
from ..validation import NotFoundError, ValidationError, coerce_int
from shopledger.time_utils import utcnow
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry


@dataclass(frozen=True)
class StockDelta:
    product_id: int
    quantity_delta: int


def stock_deltas(lines: Iterable[OrderItem], sign: int) -> list[StockDelta]:
    """
    Per-product stock deltas for a set of order lines.

    Only lines with a product reference and positive quantity move stock.
    sign=-1 for order creation, +1 for discard; discard passes the order's own
    stored lines so the reversal is exact even if the catalog changed.
    """
    totals: dict[int, int] = {}
    for line in lines:
        if line.product_id is None or not line.quantity or line.quantity <= 0:
            continue
        totals[line.product_id] = totals.get(line.product_id, 0) + abs(line.quantity)
    return [StockDelta(product_id=pid, quantity_delta=sign * qty) for pid, qty in sorted(totals.items())]


def resolve_products(user_id: str, product_ids: Iterable[int]) -> dict[int, Product]:
    """Load the shop's products by id; raise NotFoundError listing ids that do not resolve."""
    wanted = set(product_ids)
    if not wanted:
        return {}
    products = db.session.query(Product).filter(
        Product.user_id == user_id,
        Product.id.in_(wanted),
    ).all()
    found = {p.id: p for p in products}
    missing = sorted(wanted - set(found))
    if missing:
        raise NotFoundError(f"Product(s) not found: {', '.join(str(m) for m in missing)}")
    return found


def check_available(user_id: str, deltas: list[StockDelta]) -> None:
    """Reject deltas that would take any product below zero stock."""
    insufficient = []
    for delta in deltas:
        if delta.quantity_delta >= 0:
            continue
        product = db.session.query(Product).filter_by(id=delta.product_id, user_id=user_id).first()
        on_hand = product.quantity if product else 0
        if on_hand + delta.quantity_delta < 0:
            insufficient.append({
                "product_id": delta.product_id,
                "requested_quantity": -delta.quantity_delta,
                "on_hand": on_hand,
            })

    if insufficient:
        raise ValidationError(
            "Insufficient stock for order",
            details={"items": insufficient},
        )


def apply_stock_deltas(user_id: str, deltas: list[StockDelta]) -> None:
    """
    Apply deltas as atomic `quantity = quantity + delta` updates.

    Increments commute, so concurrent orders on the same product need no
    lock. Does not commit: the caller's transaction owns the write.
    """
    for delta in deltas:
        db.session.execute(
            update(Product)
            .where(Product.id == delta.product_id, Product.user_id == user_id)
            .values(quantity=Product.quantity + delta.quantity_delta)
        )


def _log_movement(product: Product, quantity: int, note: str, at) -> RestockEvent:
    entry = RestockEvent(
        user_id=product.user_id,
        product_id=product.id,
        product_name=product.name,
        category=product.category,
        unit=product.unit,
        quantity=quantity,
        note=note,
        at=at,
    )
    db.session.add(entry)
    return entry


def restock_product(user_id: str, product_id: int, quantity) -> Product:
    """Add received stock to a product and log the movement in the same transaction."""
    qty = coerce_int(quantity, "quantity")
    if qty <= 0:
        raise ValidationError("quantity must be > 0 for restock")

    def _op():
        begin_write_transaction()
        product = resolve_products(user_id, [product_id])[product_id]
        apply_stock_deltas(user_id, [StockDelta(product_id=product_id, quantity_delta=qty)])
        _log_movement(product, qty, NOTE_RESTOCK, utcnow())
        db.session.commit()
        return db.session.get(Product, product_id, populate_existing=True)

    product = run_with_retry(_op)
    current_app.logger.info("Restocked product %s for shop %s (+%s)", product_id, user_id, qty)
    return product


def empty_stock(user_id: str) -> list[RestockEvent]:
    """
    Zero the stock of every product the shop holds.

    Each product with a non-zero quantity gets an "Empty Stock" history row
    recording the quantity removed. The reset is applied as a delta of minus
    that quantity under the write lock, so it lands on exactly zero.
    """
    if not user_id:
        raise ValidationError("user_id is required")

    def _op():
        begin_write_transaction()
        products = (
            lock_for_update(db.session.query(Product).filter(Product.user_id == user_id, Product.quantity != 0))
            .populate_existing()
            .order_by(Product.id.asc())
            .all()
        )
        now = utcnow()
        logged = [_log_movement(p, p.quantity, NOTE_EMPTY_STOCK, now) for p in products]
        apply_stock_deltas(user_id, [StockDelta(product_id=p.id, quantity_delta=-p.quantity) for p in products])
        db.session.commit()
        return logged

    logged = run_with_retry(_op)
    current_app.logger.info("Emptied stock for shop %s (%s products)", user_id, len(logged))
    return logged


def list_restock_history(user_id: str) -> list[RestockEvent]:
    """Stock movements for a shop, newest first."""
    return (
        db.session.query(RestockEvent)
        .filter_by(user_id=user_id)
        .order_by(RestockEvent.at.desc(), RestockEvent.id.desc())
        .all()
    )

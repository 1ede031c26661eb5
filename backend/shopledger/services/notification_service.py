# Overview: Best-effort order event notifications over HTTP.

from __future__ import annotations

import httpx
from flask import current_app

from ..models import Order
from shopledger.time_utils import to_utc_z, utcnow


EVENT_ORDER_CREATED = "order.created"
EVENT_ORDER_SETTLED = "order.settled"
EVENT_ORDER_DEBT_PAYMENT = "order.debt_payment"
EVENT_ORDER_DISCARDED = "order.discarded"


def _event_payload(order: Order, event_type: str) -> dict:
    return {
        "event": event_type,
        "sent_at": to_utc_z(utcnow()),
        "order": {
            "order_id": order.order_id,
            "user_id": order.user_id,
            "serial_number": order.serial_number,
            "customer_id": order.customer_id,
            "state": order.state,
            "total_cents": order.total_cents,
            "settlement_amount_cents": order.settlement_amount_cents,
            "version_id": order.version_id,
        },
    }


def dispatch_order_event(order: Order, event_type: str) -> bool:
    """
    POST an order event to ORDER_WEBHOOK_URL.

    Best-effort: called after the order transaction has committed. Delivery
    failures are logged and reported as False, never raised.
    """
    url = current_app.config.get("ORDER_WEBHOOK_URL")
    if not url:
        return False

    timeout = current_app.config.get("NOTIFY_TIMEOUT_SECONDS", 3)
    try:
        response = httpx.post(url, json=_event_payload(order, event_type), timeout=timeout)
        response.raise_for_status()
    except httpx.HTTPError:
        current_app.logger.warning(
            "Failed to deliver %s for order %s", event_type, order.order_id, exc_info=True
        )
        return False
    return True

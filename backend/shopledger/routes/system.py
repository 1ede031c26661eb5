# backend/shopledger/routes/system.py
"""
System health endpoint.

A deployment health check: confirms the database answers and reports how much
settlement work is open (unsettled orders, Debt orders).
"""

import time

from flask import Blueprint, current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Order
from ..models.orders import STATE_SETTLED_DEBT, STATE_UNSETTLED
from shopledger.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Run one grouped count over orders; any database error marks the check unhealthy."""
    started = time.perf_counter()
    try:
        rows = db.session.query(Order.state, func.count(Order.id)).group_by(Order.state).all()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.perf_counter() - started) * 1000, 2),
            "error": "Database error",
        }

    by_state = dict(rows)
    return {
        "status": "healthy",
        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
        "details": {
            "orders": sum(by_state.values()),
            "unsettled_orders": by_state.get(STATE_UNSETTLED, 0),
            "debt_orders": by_state.get(STATE_SETTLED_DEBT, 0),
        },
    }


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    body = {
        "status": database["status"],
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database},
    }
    return body, 200 if database["status"] == "healthy" else 503

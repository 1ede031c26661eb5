# Overview: Service-layer helpers for transactions, row locking and concurrent-write handling.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import ConflictError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, see begin_write_transaction.
    """
    return query.with_for_update()


def begin_write_transaction() -> None:
    """
    On SQLite, take the database write lock before the first read.

    SQLite has no row locks, so concurrent writers are serialized with
    BEGIN IMMEDIATE; a second writer then reads state committed by the first.
    No-op on other databases and when a transaction is already open.
    """
    if db.engine.dialect.name != "sqlite":
        return
    conn = db.session.connection()
    if conn.connection.dbapi_connection.in_transaction:
        return
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on transient lock failures.

    Retries on OperationalError (deadlocks, locks). Any other error rolls
    back the session and propagates, so partial writes never reach a commit.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except OperationalError as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc


def run_guarded(func):
    """
    Execute an order state transition exactly once.

    The order row carries a version_id column, so the UPDATE only matches when
    the stored version still equals the one read at the start of the
    operation. A mismatch (StaleDataError) means another request transitioned
    the order first: it is reported as a conflict and never retried, so a
    payment is not applied twice.
    """
    try:
        return func()
    except StaleDataError as exc:
        db.session.rollback()
        raise ConflictError(
            "Order was modified by another request; reload and try again.",
            details={"reason": "concurrent_modification"},
        ) from exc
    except Exception:
        db.session.rollback()
        raise

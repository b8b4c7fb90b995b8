# Overview: Service-layer helpers for concurrency; locking, retries and transaction bounds.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

TRANSIENT_ERRORS = (OperationalError, StaleDataError)


class Deadline:
    """Monotonic wall-clock bound for a retried operation."""

    def __init__(self, seconds: float):
        self.seconds = seconds
        self.expires_at = time.monotonic() + seconds

    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())

    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write_transaction()
    takes the database write lock there instead.
    """
    return query.with_for_update()


def begin_write_transaction(timeout_seconds: float | None = None) -> str:
    """
    Open the current session transaction in write mode.

    SQLite: issue BEGIN IMMEDIATE so concurrent writers queue on the database
    lock (bounded by the driver busy timeout) before reading stock.
    PostgreSQL: bound every statement of this transaction by timeout_seconds.

    Returns the dialect name.
    """
    conn = db.session.connection()
    dialect = conn.dialect.name

    if dialect == "sqlite":
        driver_conn = conn.connection.driver_connection
        if not driver_conn.in_transaction:
            conn.exec_driver_sql("BEGIN IMMEDIATE")
    elif dialect == "postgresql" and timeout_seconds:
        conn.exec_driver_sql(f"SET LOCAL statement_timeout = {int(timeout_seconds * 1000)}")

    return dialect


def run_with_retry(
    func,
    *,
    attempts: int = 3,
    backoff_base: float = 0.1,
    retry_on: tuple = TRANSIENT_ERRORS,
    deadline: Deadline | None = None,
    on_retry=None,
):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts) by default. Each failed attempt is
    rolled back. Stops early once the deadline has passed; the last error
    is re-raised.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            delay = backoff_base * (2 ** attempt)
            if deadline is not None:
                if deadline.expired():
                    raise
                delay = min(delay, deadline.remaining())
            if on_retry is not None:
                on_retry(attempt + 1, exc)
            time.sleep(delay)
    if last_exc:
        raise last_exc


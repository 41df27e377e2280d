# Overview: Transaction scope, row locking and retry helpers for sale mutations.

from __future__ import annotations

import time
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    populate_existing() makes rows already in the identity map pick up the
    values read under the lock instead of keeping a stale copy.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; transaction() takes the
    database write lock up front there instead.
    """
    return query.with_for_update().populate_existing()


def _begin_immediate():
    """
    Take the SQLite write lock up front.

    Pending session changes are flushed first and become part of this
    transaction. A connection that already wrote holds the write lock, and
    SQLite refuses a nested BEGIN, so nothing is emitted in that case.
    """
    db.session.flush()
    raw = db.session.connection().connection.dbapi_connection
    if not raw.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


@contextmanager
def transaction():
    """
    Scope one atomic unit of work on db.session.

    Commits when the block exits normally and rolls back on every exception
    path, so callers never observe a half-applied sale.
    """
    try:
        if db.engine.dialect.name == "sqlite":
            _begin_immediate()
        yield db.session
        db.session.commit()
    except BaseException:
        db.session.rollback()
        raise


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock timeouts) and StaleDataError
    (optimistic locking conflicts). Validation errors are never retried.
    """
    if attempts is None:
        attempts = current_app.config.get("SALES_LOCK_RETRY_ATTEMPTS", 3)
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Concurrent update conflict, retrying (attempt %s/%s)", attempt + 2, attempts
            )
            time.sleep(backoff_base * (2 ** attempt))

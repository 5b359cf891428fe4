# Overview: Service-layer helpers for row locking, retries and transaction boundaries.

from __future__ import annotations

import time
from functools import wraps

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

# Lock waits, deadlocks and "database is locked" surface as OperationalError.
RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Lock the selected rows until commit (stock rows, the revision counter).

    NOTE: SQLite ignores SELECT ... FOR UPDATE and serializes writers on the
    whole database instead.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Call func, rolling back and retrying on lock contention.

    Sleeps backoff_base * 2**n between attempts; the last failure propagates.
    """
    attempt = 0
    while True:
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            attempt += 1
            if attempt >= max(attempts, 1):
                raise
            current_app.logger.warning("Retrying after %s (attempt %d/%d)", type(exc).__name__, attempt, attempts)
            time.sleep(backoff_base * (2 ** (attempt - 1)))


def transactional(func):
    """
    Run a service operation as one atomic unit.

    The entity mutation and the change records it appends commit together.
    Any exception rolls both back and propagates, so a failed mutation never
    leaves a change record behind.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        def _op():
            try:
                result = func(*args, **kwargs)
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
            return result

        return run_with_retry(
            _op,
            attempts=current_app.config.get("SYNC_RETRY_ATTEMPTS", 3),
            backoff_base=current_app.config.get("SYNC_RETRY_BACKOFF", 0.1),
        )

    return wrapper

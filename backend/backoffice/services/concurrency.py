# Overview: Row locking and retry helpers for invoice and stock writes.

"""
Invoice issuance, payments and stock adjustments read-modify-write invoice
and variant rows. PostgreSQL and MySQL honor SELECT ... FOR UPDATE; SQLite
ignores the clause and serializes writers on the database file instead.
"""
from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """Add FOR UPDATE to a row query (a no-op on SQLite)."""
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run a unit of work that commits its own transaction.

    Lock timeouts, deadlocks and stale rows roll the session back and retry
    with exponential backoff. Any other exception (validation, invoice rule
    violations) propagates on the first attempt.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for attempt in range(1, attempts + 1):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt == attempts:
                logger.error("Giving up after %d attempts: %s", attempts, exc)
                raise
            delay = backoff_base * (2 ** (attempt - 1))
            logger.warning(
                "%s on attempt %d/%d, retrying in %.2fs", type(exc).__name__, attempt, attempts, delay
            )
            time.sleep(delay)

# Overview: Row locking, retry on lock contention, and storage error translation.

from __future__ import annotations

import logging
import time

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, DisconnectionError, InterfaceError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import PersistenceUnavailable

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def is_disconnect(exc: BaseException) -> bool:
    """True when the store itself is unreachable, as opposed to a rejected write."""
    if isinstance(exc, (DisconnectionError, InterfaceError)):
        return True
    return isinstance(exc, DBAPIError) and bool(exc.connection_invalidated)


def ensure_available() -> None:
    """
    Touch the store before a write.

    A database that cannot be opened or reached fails here as
    PersistenceUnavailable instead of being retried as lock contention.
    """
    try:
        db.session.execute(text("SELECT 1"))
    except (OperationalError, InterfaceError) as exc:
        db.session.rollback()
        logger.error("Database unreachable: %s", exc)
        raise PersistenceUnavailable("Database unavailable") from exc


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). A lost connection is not retried and
    surfaces as PersistenceUnavailable.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if is_disconnect(exc):
                raise PersistenceUnavailable("Database unavailable") from exc
            if attempt >= attempts - 1:
                raise
            logger.warning("Retrying after lock contention (attempt %d/%d): %s", attempt + 1, attempts, exc)
            time.sleep(backoff_base * (2 ** attempt))

# Overview: Transaction scoping, row locking and retry helpers used by every workflow.

from __future__ import annotations

import functools
import logging
import time
from contextlib import contextmanager

from flask import current_app, has_app_context
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from .errors import DatabaseUnavailable

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (OperationalError, PoolTimeoutError, StaleDataError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; transaction() takes the
    database write lock up front there instead.
    """
    return query.with_for_update()


def _statement_timeout_ms() -> int | None:
    if not has_app_context():
        return None
    seconds = current_app.config.get("QUERY_TIMEOUT_SECONDS")
    return int(seconds * 1000) if seconds else None


def _begin(session: Session) -> None:
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        # Take the write lock up front so check-then-write runs serialized
        raw = session.connection().connection.dbapi_connection
        if not raw.in_transaction:
            session.execute(text("BEGIN IMMEDIATE"))
    elif dialect == "postgresql":
        timeout_ms = _statement_timeout_ms()
        if timeout_ms:
            session.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))


@contextmanager
def transaction(session: Session):
    """
    Scope one unit of work: commit on normal exit, roll back on any exception.

    Reads made inside the block see the transaction's snapshot, so a
    check-then-decrement sequence is serialized by the commit.
    """
    try:
        _begin(session)
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks, timeouts) and
    StaleDataError (optimistic locking conflicts). When attempts are
    exhausted the failure surfaces as DatabaseUnavailable.
    """
    if attempts is None:
        attempts = current_app.config.get("TRANSACTION_RETRY_ATTEMPTS", 3) if has_app_context() else 3
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            logger.warning("Database operation failed (attempt %d/%d): %s", attempt + 1, attempts, exc)
            if attempt >= attempts - 1:
                raise DatabaseUnavailable(
                    "Database connection unavailable",
                    "Please try again in a moment",
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))


def run_read(session: Session, func, *, attempts: int | None = None):
    """
    Read-only counterpart of run_with_retry.

    Rolls the session back between attempts so a failed connection is not
    reused, and surfaces exhaustion as DatabaseUnavailable like writes do.
    """
    def _attempt():
        try:
            return func()
        except RETRYABLE_ERRORS:
            session.rollback()
            raise

    return run_with_retry(_attempt, attempts=attempts)


def retrying_read(func):
    """Decorator form of run_read for service reads taking the session first."""
    @functools.wraps(func)
    def wrapper(session: Session, *args, **kwargs):
        return run_read(session, lambda: func(session, *args, **kwargs))

    return wrapper

# Overview: Unit-of-work, retry and row-locking helpers shared by the write services.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import TransientStoreError
from ..extensions import db


WRITE_MODE_AUTO = "auto"
WRITE_MODE_TRANSACTIONAL = "transactional"
WRITE_MODE_SEQUENTIAL = "sequential"
WRITE_MODES = {WRITE_MODE_AUTO, WRITE_MODE_TRANSACTIONAL, WRITE_MODE_SEQUENTIAL}

# Lower-cased fragments of driver messages that mark a retryable conflict
TRANSIENT_MARKERS = (
    "deadlock",
    "could not serialize",
    "serialization failure",
    "write conflict",
    "database is locked",
    "lock timeout",
    "lock wait timeout",
    "transaction aborted",
)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def is_transient_error(exc: BaseException) -> bool:
    """True for failures worth retrying in a fresh unit of work."""
    if isinstance(exc, (OperationalError, StaleDataError, TransientStoreError)):
        return True
    if isinstance(exc, DBAPIError):
        message = str(exc.orig if exc.orig is not None else exc).lower()
        return any(marker in message for marker in TRANSIENT_MARKERS)
    return False


def backoff_delay(attempt: int, base: float, cap: float) -> float:
    """Exponential backoff for the given zero-based attempt, capped."""
    return min(base * (2 ** attempt), cap)


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None, backoff_cap: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks), StaleDataError
    (optimistic locking conflicts), driver errors carrying a transient
    marker and TransientStoreError. The last failure is re-raised once the
    attempts are exhausted.
    """
    config = current_app.config
    if attempts is None:
        attempts = config.get("TRANSACTION_MAX_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = config.get("TRANSACTION_BACKOFF_BASE", 1.0)
    if backoff_cap is None:
        backoff_cap = config.get("TRANSACTION_BACKOFF_CAP", 5.0)

    for attempt in range(attempts):
        try:
            return func()
        except Exception as exc:
            if not is_transient_error(exc):
                raise
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            delay = backoff_delay(attempt, backoff_base, backoff_cap)
            current_app.logger.warning(
                "Transient storage error on attempt %s/%s, retrying in %.2fs: %s",
                attempt + 1, attempts, delay, exc,
            )
            time.sleep(delay)


def _apply_statement_timeout(timeout_seconds: float) -> None:
    bind = db.session.get_bind()
    if bind.dialect.name == "postgresql":
        db.session.execute(text(f"SET LOCAL statement_timeout = {int(timeout_seconds * 1000)}"))


def run_atomic(func, *, timeout_seconds: float | None = None):
    """
    Run ``func`` as one unit of work and commit it.

    Everything ``func`` does through ``db.session`` commits or rolls back
    together. The attempt has a wall-clock budget, checked right before
    commit; running over it rolls back and raises TransientStoreError.
    """
    if timeout_seconds is None:
        timeout_seconds = current_app.config.get("TRANSACTION_TIMEOUT_SECONDS", 60.0)

    deadline = time.monotonic() + timeout_seconds
    try:
        _apply_statement_timeout(timeout_seconds)
        result = func()
        db.session.flush()
        if time.monotonic() > deadline:
            raise TransientStoreError(
                "Transaction exceeded its time budget",
                {"timeout_seconds": timeout_seconds},
            )
        db.session.commit()
        return result
    except Exception:
        db.session.rollback()
        raise


def run_transaction_with_retry(func, *, attempts: int | None = None):
    """Atomic unit of work, retried as a whole on transient failures."""
    return run_with_retry(lambda: run_atomic(func), attempts=attempts)


def commit_step(func):
    """
    Run one write and commit it on its own (sequential mode).

    Nothing done by earlier steps is rolled back if this step fails.
    """
    try:
        result = func()
        db.session.commit()
        return result
    except Exception:
        db.session.rollback()
        raise


def supports_savepoints(engine) -> bool:
    """Check whether the engine can open a SAVEPOINT inside a transaction."""
    try:
        with engine.connect() as conn:
            with conn.begin():
                nested = conn.begin_nested()
                nested.rollback()
        return True
    except SQLAlchemyError:
        return False


def resolve_write_mode(configured: str, engine) -> str:
    """
    Map ORDER_WRITE_MODE to the concrete builder mode.

    "auto" selects the transactional builder when the engine supports
    SAVEPOINTs and the sequential builder otherwise.
    """
    mode = (configured or WRITE_MODE_AUTO).strip().lower()
    if mode not in WRITE_MODES:
        raise ValueError(f"ORDER_WRITE_MODE must be one of {sorted(WRITE_MODES)}, got {configured!r}")
    if mode != WRITE_MODE_AUTO:
        return mode
    return WRITE_MODE_TRANSACTIONAL if supports_savepoints(engine) else WRITE_MODE_SEQUENTIAL

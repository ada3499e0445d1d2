# Overview: Row locking and retry helpers for multi-step writes.

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def begin_write_transaction() -> None:
    """
    On SQLite, take the database write lock up front.

    Other dialects rely on the row locks taken by lock_for_update().
    Must run before the first write of the unit of work.
    """
    if db.engine.dialect.name == "sqlite":
        raw = db.session.connection().connection.dbapi_connection
        # Already writing in this unit of work; the lock is held
        if not raw.in_transaction:
            db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on lock contention.

    Retries on OperationalError (deadlocks, busy database). Any other
    exception rolls the session back and propagates unchanged.
    """
    for attempt in range(attempts):
        try:
            return func()
        except OperationalError:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise

# Overview: Transaction helpers shared by every write path: write locks, row locks and retry.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def begin_write() -> None:
    """
    Take the database write lock up front.

    SQLite only locks on the first write, so two requests can both read
    stale counters before either writes. BEGIN IMMEDIATE serializes them.
    Other engines rely on the conditional UPDATEs and lock_for_update.
    """
    if db.engine.dialect.name != "sqlite":
        return
    dbapi_conn = db.session.connection().connection.dbapi_connection
    if not dbapi_conn.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


def lock_for_update(query):
    """Row lock for the read-then-write paths; a no-op on SQLite, where begin_write already holds the lock."""
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run one unit of work, retrying when the database reports lock contention.

    OperationalError (database is locked, deadlock) and StaleDataError are
    retried with exponential backoff. Every failure rolls the session back
    first, so a rejected request never leaves half-applied counter updates
    in the open transaction. Domain errors propagate on the first attempt.
    """
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt == attempts:
                current_app.logger.error("Giving up after %d attempts: %s", attempts, exc)
                raise
            delay = backoff_base * (2 ** (attempt - 1))
            current_app.logger.warning(
                "Write conflict on attempt %d/%d, retrying in %.2fs: %s", attempt, attempts, delay, exc
            )
            time.sleep(delay)
        except Exception:
            db.session.rollback()
            raise

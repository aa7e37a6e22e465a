# Overview: Retry and conflict helpers shared by ledger writers.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on transient lock failures.

    Only OperationalError (deadlocks, "database is locked") is retried; the
    session is rolled back before each new attempt.
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
    if last_exc:
        raise last_exc


def commit_or_conflict(conflict_factory):
    """
    Commit the session, turning an optimistic version mismatch into the
    caller's conflict exception (built by conflict_factory()).
    """
    try:
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        raise conflict_factory() from exc

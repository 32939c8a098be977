# Overview: Optimistic-concurrency helpers shared by every read-modify-write path.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class ConcurrentUpdateError(Exception):
    """Raised when a write keeps losing to concurrent writers after all retries."""


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    version_id_col still catches the lost update there.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.05):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). func must re-read everything it writes,
    since each retry starts from a rolled back session.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise ConcurrentUpdateError("Concurrent update; retry the request") from exc
            time.sleep(backoff_base * (2 ** attempt))
    raise ConcurrentUpdateError("Concurrent update; retry the request")


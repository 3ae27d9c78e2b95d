# Overview: Service-layer transaction scoping, row locking and lock-contention retry.

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class StorageError(Exception):
    """
    Persistence failure. The underlying exception is kept as __cause__ for the
    log; callers only ever see the generic message.
    """

    def __init__(self, message: str = "A storage error occurred"):
        super().__init__(message)


class AtomicUnit:
    """
    Explicit transaction handle over the current db.session.

    Every write between begin() and commit() lands together or not at all.
    Used as a context manager it commits on a clean exit and rolls back on
    any exception.

    NOTE: On SQLite begin() issues BEGIN IMMEDIATE so the write lock is taken
    up front and concurrent writers queue on the busy timeout instead of
    deadlocking on lock upgrade. Other databases rely on lock_for_update().
    """

    def __init__(self, session=None):
        self.session = session or db.session
        self.active = False

    def begin(self) -> "AtomicUnit":
        if self.active:
            raise RuntimeError("atomic unit already started")
        if self.session.get_bind().dialect.name == "sqlite":
            self.session.execute(text("BEGIN IMMEDIATE"))
        self.active = True
        return self

    def commit(self) -> None:
        if not self.active:
            raise RuntimeError("atomic unit not started")
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
        finally:
            self.active = False

    def rollback(self) -> None:
        self.session.rollback()
        self.active = False

    def __enter__(self) -> "AtomicUnit":
        return self.begin()

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self.rollback()
            return False
        self.commit()
        return False


def atomic(session=None) -> AtomicUnit:
    return AtomicUnit(session)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Anything else propagates on the first
    failure.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc

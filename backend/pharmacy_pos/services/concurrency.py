# Overview: Transaction and retry helpers for write paths that contend on shared rows.

from __future__ import annotations

import logging
import time

from sqlalchemy import event, text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, scoped_session
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError, PersistenceError

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (OperationalError, StaleDataError)

# Session.info flag: writes were sent to the database but not yet committed
_UNCOMMITTED_WRITES = "pos_uncommitted_writes"


@event.listens_for(Session, "after_flush")
def _mark_flushed(session, flush_context):
    session.info[_UNCOMMITTED_WRITES] = True


@event.listens_for(Session, "do_orm_execute")
def _mark_bulk_write(orm_execute_state):
    if orm_execute_state.is_insert or orm_execute_state.is_update or orm_execute_state.is_delete:
        orm_execute_state.session.info[_UNCOMMITTED_WRITES] = True


@event.listens_for(Session, "after_transaction_end")
def _clear_writes(session, transaction):
    # savepoints have a parent; only the outermost transaction ending settles the writes
    if transaction.parent is None:
        session.info.pop(_UNCOMMITTED_WRITES, None)


def _real_session(session) -> Session:
    # db.session is a scoped_session proxy; transaction state lives on the Session it wraps
    return session() if isinstance(session, scoped_session) else session


def has_uncommitted_changes(session) -> bool:
    """True if the session holds pending objects or flushed writes not yet committed."""
    real = _real_session(session)
    if real.new or real.deleted:
        return True
    if any(real.is_modified(obj) for obj in real.dirty):
        return True
    return bool(real.info.get(_UNCOMMITTED_WRITES))


def require_clean_session(session) -> None:
    """
    Refuse to start a unit of work on a session that carries the caller's own
    uncommitted changes. The unit of work commits or rolls back as a whole, so
    that work would otherwise be committed or discarded along with it.
    """
    if has_uncommitted_changes(session):
        raise PersistenceError(
            "Session has uncommitted changes; commit or roll back before starting a write",
            details={"reason": "UNCOMMITTED_CHANGES"},
        )


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def begin_write(session) -> None:
    """
    Open a write transaction on the session.

    The session must be clean (see require_clean_session). A read-only
    transaction left open by earlier queries is rolled back so the write
    starts from fresh state on every backend.

    SQLite: issues BEGIN IMMEDIATE so the database write lock is taken up
    front and concurrent writers queue behind it instead of failing halfway
    through.
    """
    real = _real_session(session)
    if real.in_transaction():
        real.rollback()
    if real.get_bind().dialect.name == "sqlite":
        real.execute(text("BEGIN IMMEDIATE"))


def _is_connection_loss(exc: Exception) -> bool:
    return bool(getattr(exc, "connection_invalidated", False))


def run_with_retry(func, *, session, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). The session is rolled back before each
    retry so the operation restarts from a clean slate.

    Raises ConflictError once the budget is exhausted, PersistenceError on
    connection loss (never retried).
    """
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            session.rollback()
            if _is_connection_loss(exc):
                raise PersistenceError("Database connection lost") from exc
            if attempt >= attempts - 1:
                logger.warning("Write conflict persisted after %d attempts: %s", attempts, exc)
                raise ConflictError(
                    "Concurrent update conflict, please retry",
                    details={"attempts": attempts},
                ) from exc
            logger.info("Write conflict on attempt %d/%d, retrying", attempt + 1, attempts)
            time.sleep(backoff_base * (2 ** attempt))
    raise ConflictError("Concurrent update conflict, please retry", details={"attempts": attempts})


def run_unit_of_work(func, *, session, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run func inside one atomic write transaction and commit it.

    All-or-nothing: any exception rolls the whole transaction back.
    Storage conflicts restart func from the beginning (bounded by attempts);
    other SQLAlchemy failures surface as PersistenceError; domain errors are
    re-raised unchanged.

    Raises PersistenceError up front, without touching the session, if the
    session already carries uncommitted changes.
    """
    require_clean_session(session)

    def _op():
        try:
            begin_write(session)
            result = func()
            session.commit()
            return result
        except RETRYABLE_ERRORS:
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            raise PersistenceError("Failed to persist changes", details={"reason": str(exc.__class__.__name__)}) from exc
        except Exception:
            session.rollback()
            raise

    return run_with_retry(_op, session=session, attempts=attempts, backoff_base=backoff_base)

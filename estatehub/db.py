from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker, DeclarativeBase, Session

from .config import settings
from .errors import TransactionConflict

log = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def make_engine(url: str):
    kwargs: dict = {"pool_pre_ping": True, "future": True}
    if url.startswith("sqlite"):
        # FastAPI runs sync endpoints in a threadpool
        kwargs["connect_args"] = {"check_same_thread": False, "timeout": 15}

    eng = create_engine(url, **kwargs)

    if url.startswith("sqlite"):

        @event.listens_for(eng, "connect")
        def _sqlite_fk_on(dbapi_conn, _record):
            cur = dbapi_conn.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()

    return eng


engine = make_engine(settings.database_url)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    future=True,
)


def get_db():
    """
    IMPORTANT (Postgres):
    If any SQL statement fails, the transaction is aborted and the session
    cannot run further statements until a rollback happens.

    This dependency guarantees rollback on exceptions so errors don't cascade
    into "InFailedSqlTransaction" on later queries in the same request.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# serialization_failure, deadlock_detected, lock_not_available
_RETRYABLE_SQLSTATES = frozenset({"40001", "40P01", "55P03"})
_RETRYABLE_MESSAGES = ("database is locked", "database table is locked", "deadlock")


def is_retryable_abort(exc: OperationalError) -> bool:
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code in _RETRYABLE_SQLSTATES:
        return True
    text = str(orig if orig is not None else exc).lower()
    return any(m in text for m in _RETRYABLE_MESSAGES)


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """
    All-or-nothing unit of work.

    - commits when the block exits normally
    - rolls back on any exception and re-raises it
    - storage-level aborts (deadlock, serialization failure, lock timeout)
      surface as TransactionConflict so callers can retry; any other
      OperationalError propagates unchanged
    """
    try:
        yield db
        db.commit()
    except OperationalError as exc:
        db.rollback()
        if not is_retryable_abort(exc):
            raise
        log.warning("transaction aborted by store: %s", exc.orig if exc.orig is not None else exc)
        raise TransactionConflict() from exc
    except Exception:
        db.rollback()
        raise

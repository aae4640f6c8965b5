from __future__ import annotations

import sqlite3

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from estatehub.db import atomic, get_db, is_retryable_abort
from estatehub.errors import TransactionConflict
from estatehub.main import create_app
from estatehub.models import Plot, PlotStatus, Role
from estatehub.services.tokens import create_access_token


@pytest.fixture()
def db_path(tmp_path):
    return tmp_path / "estatehub-test.db"


@pytest.fixture()
def impatient_sessions(engine, db_path):
    """Sessions on the test database that give up on a held lock after 100ms."""
    eng = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False, "timeout": 0.1})
    yield sessionmaker(bind=eng, autoflush=False, autocommit=False, expire_on_commit=False, future=True)
    eng.dispose()


@pytest.fixture()
def locked_db(world, db_path):
    """Another connection holds an exclusive lock for the duration of the test."""
    conn = sqlite3.connect(str(db_path), isolation_level=None)
    conn.execute("BEGIN EXCLUSIVE")
    try:
        yield conn
    finally:
        conn.execute("ROLLBACK")
        conn.close()


class _PgError(Exception):
    def __init__(self, msg: str, pgcode: str | None = None):
        super().__init__(msg)
        self.pgcode = pgcode


def _operational(msg: str, pgcode: str | None = None) -> OperationalError:
    return OperationalError("UPDATE plots SET status=?", {}, _PgError(msg, pgcode))


@pytest.mark.parametrize(
    "exc, expected",
    [
        (_operational("could not serialize access", "40001"), True),
        (_operational("deadlock detected", "40P01"), True),
        (_operational("could not obtain lock on row", "55P03"), True),
        (_operational("database is locked"), True),
        (_operational("no such table: nope"), False),
        (_operational("server closed the connection unexpectedly", "08006"), False),
    ],
)
def test_retryable_abort_classification(exc, expected):
    assert is_retryable_abort(exc) is expected


def test_atomic_commits_on_success(world, session_factory):
    s = session_factory()
    try:
        with atomic(s):
            s.execute(update(Plot).where(Plot.id == world.plot_a).values(price=1.0))
    finally:
        s.close()

    s = session_factory()
    try:
        assert s.get(Plot, world.plot_a).price == 1.0
    finally:
        s.close()


def test_atomic_rolls_back_and_reraises(world, session_factory):
    s = session_factory()
    try:
        with pytest.raises(ValueError):
            with atomic(s):
                s.execute(update(Plot).where(Plot.id == world.plot_a).values(price=1.0))
                raise ValueError("boom")
    finally:
        s.close()

    s = session_factory()
    try:
        assert s.get(Plot, world.plot_a).price == 50000.0
    finally:
        s.close()


def test_lock_timeout_becomes_transaction_conflict(world, impatient_sessions, locked_db):
    s = impatient_sessions()
    try:
        with pytest.raises(TransactionConflict) as exc:
            with atomic(s):
                s.execute(update(Plot).where(Plot.id == world.plot_a).values(status=PlotStatus.BOOKED.value))
    finally:
        s.close()

    assert exc.value.retryable is True
    assert exc.value.status_code == 503
    assert isinstance(exc.value.__cause__, OperationalError)


def test_other_operational_errors_propagate(world, session_factory):
    s = session_factory()
    try:
        with pytest.raises(OperationalError) as exc:
            with atomic(s):
                s.execute(text("SELECT * FROM nope"))
    finally:
        s.close()

    assert not isinstance(exc.value, TransactionConflict)
    assert "no such table" in str(exc.value)


def test_lock_timeout_over_http_is_503_with_retry_after(world, impatient_sessions, locked_db):
    app = create_app()

    def _get_db():
        s = impatient_sessions()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _get_db
    token = create_access_token(user_id=world.agent_a, role=Role.AGENT.value, company_id=world.company_a)

    with TestClient(app) as c:
        r = c.post(
            "/api/bookings",
            json={"plotId": world.plot_a, "clientName": "Jane Client", "amount": 1000},
            headers={"Authorization": f"Bearer {token}"},
        )

    assert r.status_code == 503
    assert r.headers["Retry-After"] == "1"
    assert r.json()["kind"] == "transaction_conflict"

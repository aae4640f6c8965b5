"""
Pytest fixtures for estatehub tests.

Every test gets its own file-backed SQLite database so that several sessions
can interleave against the same rows.
"""
from __future__ import annotations

from dataclasses import dataclass

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from estatehub import models  # noqa: F401
from estatehub.config import settings
from estatehub.db import Base, get_db, make_engine
from estatehub.main import create_app
from estatehub.models import Company, Plot, PlotStatus, Project, Role, User
from estatehub.services.passwords import hash_password

PASSWORD = "s3cret-pass"


@dataclass
class World:
    company_a: int
    company_b: int
    super_admin: int
    admin_a: int
    agent_a: int
    agent_b: int
    project_a: int
    project_b: int
    plot_a: int
    plot_a2: int
    plot_b: int


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    monkeypatch.setattr(settings, "password_pbkdf2_iters", 1000)


@pytest.fixture()
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'estatehub-test.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)


@pytest.fixture()
def db(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


def _mk_user(db, username: str, role: Role, company_id: int | None) -> int:
    u = User(username=username, password_hash=hash_password(PASSWORD), role=role.value, company_id=company_id)
    db.add(u)
    db.commit()
    return int(u.id)


def _mk_plot(db, project_id: int, number: str) -> int:
    p = Plot(project_id=project_id, plot_number=number, area=120.0, price=50000.0, status=PlotStatus.AVAILABLE.value)
    db.add(p)
    db.commit()
    return int(p.id)


@pytest.fixture()
def world(db) -> World:
    """Two companies, each with a project and plots, plus one user per role."""
    ca = Company(name="Company A")
    cb = Company(name="Company B")
    db.add_all([ca, cb])
    db.commit()

    pa = Project(company_id=ca.id, name="Green Acres", location="North")
    pb = Project(company_id=cb.id, name="Blue Hills", location="South")
    db.add_all([pa, pb])
    db.commit()

    return World(
        company_a=int(ca.id),
        company_b=int(cb.id),
        super_admin=_mk_user(db, "root", Role.SUPER_ADMIN, None),
        admin_a=_mk_user(db, "admin_a", Role.COMPANY_ADMIN, int(ca.id)),
        agent_a=_mk_user(db, "agent_a", Role.AGENT, int(ca.id)),
        agent_b=_mk_user(db, "agent_b", Role.AGENT, int(cb.id)),
        project_a=int(pa.id),
        project_b=int(pb.id),
        plot_a=_mk_plot(db, int(pa.id), "A-1"),
        plot_a2=_mk_plot(db, int(pa.id), "A-2"),
        plot_b=_mk_plot(db, int(pb.id), "B-1"),
    )


@pytest.fixture()
def client(session_factory):
    app = create_app()

    def _get_db():
        s = session_factory()
        try:
            yield s
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c


def login(client: TestClient, username: str, password: str = PASSWORD) -> dict[str, str]:
    r = client.post("/api/auth/login", json={"username": username, "password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['accessToken']}"}


@pytest.fixture()
def auth_headers(client, world):
    """Bearer headers per username, logged in lazily."""
    cache: dict[str, dict[str, str]] = {}

    def _get(username: str) -> dict[str, str]:
        if username not in cache:
            cache[username] = login(client, username)
        return cache[username]

    return _get

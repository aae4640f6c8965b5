# estatehub/cli/seed_admin.py
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from estatehub.db import Base, SessionLocal, atomic, engine
from estatehub.models import Role, User
from estatehub.services.passwords import hash_password


@dataclass(frozen=True)
class SeedResult:
    user_id: int
    username: str
    created: bool


def init_db() -> None:
    """Create all tables in place. Local SQLite only; real deployments run alembic."""
    Base.metadata.create_all(bind=engine)


def ensure_super_admin(db: Session, *, username: str, password: str) -> SeedResult:
    existing = db.scalar(
        select(User).where(User.role == Role.SUPER_ADMIN.value).order_by(User.id).limit(1)
    )
    if existing:
        return SeedResult(user_id=int(existing.id), username=str(existing.username), created=False)

    with atomic(db):
        row = User(
            username=username.strip(),
            password_hash=hash_password(password),
            role=Role.SUPER_ADMIN.value,
            company_id=None,
            is_active=True,
        )
        db.add(row)
        db.flush()
        out = SeedResult(user_id=int(row.id), username=str(row.username), created=True)
    return out


def seed_admin(*, username: str, password: str) -> SeedResult:
    db = SessionLocal()
    try:
        return ensure_super_admin(db, username=username, password=password)
    finally:
        db.close()

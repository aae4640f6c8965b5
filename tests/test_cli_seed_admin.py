from __future__ import annotations

from sqlalchemy import func, select

from estatehub.cli.seed_admin import ensure_super_admin
from estatehub.models import Role, User
from estatehub.services.passwords import verify_password


def test_seed_admin_is_idempotent(db):
    first = ensure_super_admin(db, username="superadmin", password="change-me-now")
    second = ensure_super_admin(db, username="someone-else", password="other")

    assert first.created is True
    assert second.created is False
    assert second.user_id == first.user_id

    count = db.scalar(select(func.count(User.id)).where(User.role == Role.SUPER_ADMIN.value))
    assert count == 1

    row = db.get(User, first.user_id)
    assert row.company_id is None
    assert verify_password("change-me-now", row.password_hash)

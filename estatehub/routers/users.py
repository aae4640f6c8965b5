# estatehub/routers/users.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session

from ..auth import Principal, require_admin
from ..db import atomic, get_db
from ..domain.audit import audit_write
from ..errors import Conflict, Forbidden, ValidationFailed
from ..models import Role, User
from ..pagination import PageParams, page_meta, page_params
from ..schemas import OkOut, Page, UserCreate, UserOut, UserUpdate
from ..services.auth_service import revoke_all_for_user
from ..services.ownership import must_get_company, must_get_user
from ..services.passwords import hash_password
from ..services.tenant_scope import apply_scope

router = APIRouter(prefix="/users", tags=["users"])


def _username_taken(db: Session, username: str, *, exclude_id: Optional[int] = None) -> bool:
    q = select(User.id).where(User.username == username)
    if exclude_id is not None:
        q = q.where(User.id != int(exclude_id))
    return db.scalar(q) is not None


def _resolve_company_for_new_user(db: Session, p: Principal, payload: UserCreate) -> Optional[int]:
    if not p.is_super_admin:
        if payload.role != Role.AGENT:
            raise Forbidden("Company admins can only create agents")
        return int(p.company_id)

    if payload.role == Role.SUPER_ADMIN:
        return None
    if payload.company_id is None:
        raise ValidationFailed("companyId is required for company users")
    return int(must_get_company(db, p, company_id=payload.company_id).id)


@router.post("", response_model=UserOut, status_code=201)
def create_user(payload: UserCreate, db: Session = Depends(get_db), p: Principal = Depends(require_admin)):
    username = payload.username.strip()

    with atomic(db):
        company_id = _resolve_company_for_new_user(db, p, payload)
        if _username_taken(db, username):
            raise Conflict("Username already exists")

        row = User(
            username=username,
            password_hash=hash_password(payload.password),
            role=payload.role.value,
            company_id=company_id,
            is_active=True,
        )
        db.add(row)
        db.flush()

        audit_write(
            db,
            company_id=company_id,
            actor_user_id=p.user_id,
            action="user.create",
            entity_type="User",
            entity_id=str(row.id),
            after={"username": username, "role": row.role},
        )
    return row


@router.get("", response_model=Page[UserOut])
def list_users(
    search: Optional[str] = Query(default=None),
    role: Optional[Role] = Query(default=None),
    pg: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    p: Principal = Depends(require_admin),
):
    q = apply_scope(select(User).where(User.is_active.is_(True)), p, User.company_id)
    if search:
        q = q.where(User.username.contains(search.strip()))
    if role is not None:
        q = q.where(User.role == role.value)

    total = int(db.scalar(select(func.count()).select_from(q.subquery())) or 0)
    rows = db.scalars(q.order_by(desc(User.created_at), desc(User.id)).offset(pg.offset).limit(pg.limit)).all()
    return {"data": list(rows), "meta": page_meta(total, pg)}


@router.get("/{user_id}", response_model=UserOut)
def get_user(user_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_admin)):
    return must_get_user(db, p, user_id=user_id)


@router.put("/{user_id}", response_model=UserOut)
def update_user(user_id: int, payload: UserUpdate, db: Session = Depends(get_db), p: Principal = Depends(require_admin)):
    with atomic(db):
        row = must_get_user(db, p, user_id=user_id)
        before = {"username": row.username, "role": row.role}

        if payload.role is not None and payload.role.value != row.role:
            if not p.is_super_admin:
                raise Forbidden("Company admins cannot change roles")
            if payload.role != Role.SUPER_ADMIN and row.company_id is None:
                raise ValidationFailed("Company users must belong to a company")
            row.role = payload.role.value

        if payload.username is not None:
            username = payload.username.strip()
            if _username_taken(db, username, exclude_id=int(row.id)):
                raise Conflict("Username already exists")
            row.username = username

        if payload.password is not None:
            row.password_hash = hash_password(payload.password)

        db.add(row)
        audit_write(
            db,
            company_id=row.company_id,
            actor_user_id=p.user_id,
            action="user.update",
            entity_type="User",
            entity_id=str(row.id),
            before=before,
            after={"username": row.username, "role": row.role},
        )
    return row


@router.delete("/{user_id}", response_model=OkOut)
def delete_user(user_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_admin)):
    if int(user_id) == int(p.user_id):
        raise ValidationFailed("Cannot delete your own account")

    with atomic(db):
        row = must_get_user(db, p, user_id=user_id)
        row.is_active = False
        db.add(row)
        revoked = revoke_all_for_user(db, user_id=int(row.id), reason="user_disabled")
        audit_write(
            db,
            company_id=row.company_id,
            actor_user_id=p.user_id,
            action="user.deactivate",
            entity_type="User",
            entity_id=str(row.id),
            after={"revoked_tokens": revoked},
        )
    return {"ok": True, "message": "User deleted successfully"}

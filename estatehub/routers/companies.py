# estatehub/routers/companies.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session

from ..auth import Principal, require_admin, require_super_admin
from ..db import atomic, get_db
from ..errors import Forbidden
from ..models import Company, Project, User
from ..pagination import PageParams, page_meta, page_params
from ..schemas import CompanyCreate, CompanyDetailOut, CompanyOut, CompanyUpdate, OkOut, Page
from ..services.ownership import must_get_company
from ..services.tenant_scope import in_scope

router = APIRouter(prefix="/companies", tags=["companies"])


@router.post("", response_model=CompanyOut, status_code=201)
def create_company(payload: CompanyCreate, db: Session = Depends(get_db), p: Principal = Depends(require_super_admin)):
    with atomic(db):
        row = Company(name=payload.name, is_active=True)
        db.add(row)
        db.flush()
    return row


@router.get("", response_model=Page[CompanyOut])
def list_companies(
    search: Optional[str] = Query(default=None),
    pg: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    p: Principal = Depends(require_super_admin),
):
    q = select(Company).where(Company.is_active.is_(True))
    if search:
        q = q.where(Company.name.contains(search.strip()))

    total = int(db.scalar(select(func.count()).select_from(q.subquery())) or 0)
    rows = db.scalars(q.order_by(desc(Company.created_at), desc(Company.id)).offset(pg.offset).limit(pg.limit)).all()
    return {"data": list(rows), "meta": page_meta(total, pg)}


@router.get("/{company_id}", response_model=CompanyDetailOut)
def get_company(company_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_admin)):
    if not in_scope(p, company_id):
        raise Forbidden("Access denied")

    row = must_get_company(db, p, company_id=company_id)
    users = db.scalars(
        select(User).where(User.company_id == int(row.id), User.is_active.is_(True)).order_by(User.id)
    ).all()
    projects = db.scalars(
        select(Project).where(Project.company_id == int(row.id), Project.is_active.is_(True)).order_by(Project.id)
    ).all()

    return {
        "id": int(row.id),
        "name": row.name,
        "is_active": bool(row.is_active),
        "created_at": row.created_at,
        "users": list(users),
        "projects": list(projects),
    }


@router.put("/{company_id}", response_model=CompanyOut)
def update_company(
    company_id: int,
    payload: CompanyUpdate,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_super_admin),
):
    with atomic(db):
        row = must_get_company(db, p, company_id=company_id)
        row.name = payload.name
        db.add(row)
    return row


@router.delete("/{company_id}", response_model=OkOut)
def deactivate_company(company_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_super_admin)):
    with atomic(db):
        row = must_get_company(db, p, company_id=company_id)
        row.is_active = False
        db.add(row)
    return {"ok": True, "message": "Company deactivated successfully"}

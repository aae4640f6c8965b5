# estatehub/routers/projects.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import desc, func, or_, select
from sqlalchemy.orm import Session

from ..auth import Principal, require_admin
from ..db import atomic, get_db
from ..errors import ValidationFailed
from ..models import Project
from ..pagination import PageParams, page_meta, page_params
from ..schemas import OkOut, Page, ProjectCreate, ProjectOut, ProjectUpdate
from ..services.ownership import must_get_company, must_get_project
from ..services.tenant_scope import apply_scope

router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("", response_model=ProjectOut, status_code=201)
def create_project(payload: ProjectCreate, db: Session = Depends(get_db), p: Principal = Depends(require_admin)):
    company_id = payload.company_id if p.is_super_admin else p.company_id
    if company_id is None:
        raise ValidationFailed("companyId is required")

    with atomic(db):
        company = must_get_company(db, p, company_id=int(company_id))
        row = Project(company_id=int(company.id), name=payload.name, location=payload.location)
        db.add(row)
        db.flush()
    return row


@router.get("", response_model=Page[ProjectOut])
def list_projects(
    search: Optional[str] = Query(default=None),
    pg: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    p: Principal = Depends(require_admin),
):
    q = apply_scope(select(Project).where(Project.is_active.is_(True)), p, Project.company_id)
    if search:
        s = search.strip()
        q = q.where(or_(Project.name.contains(s), Project.location.contains(s)))

    total = int(db.scalar(select(func.count()).select_from(q.subquery())) or 0)
    rows = db.scalars(q.order_by(desc(Project.created_at), desc(Project.id)).offset(pg.offset).limit(pg.limit)).all()
    return {"data": list(rows), "meta": page_meta(total, pg)}


@router.get("/{project_id}", response_model=ProjectOut)
def get_project(project_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_admin)):
    return must_get_project(db, p, project_id=project_id)


@router.put("/{project_id}", response_model=ProjectOut)
def update_project(
    project_id: int,
    payload: ProjectUpdate,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_admin),
):
    with atomic(db):
        row = must_get_project(db, p, project_id=project_id)
        for k, v in payload.model_dump(exclude_none=True).items():
            setattr(row, k, v)
        db.add(row)
    return row


@router.delete("/{project_id}", response_model=OkOut)
def delete_project(project_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_admin)):
    with atomic(db):
        row = must_get_project(db, p, project_id=project_id)
        row.is_active = False
        db.add(row)
    return {"ok": True, "message": "Project deleted successfully"}

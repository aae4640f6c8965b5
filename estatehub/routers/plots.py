# estatehub/routers/plots.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session

from ..auth import Principal, require_admin, require_any_role
from ..db import atomic, get_db
from ..errors import InvalidState
from ..models import Booking, BookingStatus, Plot, PlotStatus, Project, Sale
from ..pagination import PageParams, page_meta, page_params
from ..schemas import OkOut, Page, PlotCreate, PlotOut, PlotUpdate
from ..services.ownership import must_get_plot, must_get_project
from ..services.tenant_scope import apply_scope

router = APIRouter(prefix="/plots", tags=["plots"])


@router.post("", response_model=PlotOut, status_code=201)
def create_plot(payload: PlotCreate, db: Session = Depends(get_db), p: Principal = Depends(require_admin)):
    with atomic(db):
        project = must_get_project(db, p, project_id=payload.project_id)
        row = Plot(
            project_id=int(project.id),
            plot_number=payload.plot_number,
            area=float(payload.area),
            price=float(payload.price),
            status=PlotStatus.AVAILABLE.value,
        )
        db.add(row)
        db.flush()
    return row


@router.get("", response_model=Page[PlotOut])
def list_plots(
    search: Optional[str] = Query(default=None),
    status: Optional[PlotStatus] = Query(default=None),
    project_id: Optional[int] = Query(default=None, alias="projectId"),
    pg: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    p: Principal = Depends(require_any_role),
):
    q = select(Plot).join(Project, Project.id == Plot.project_id).where(Plot.is_active.is_(True))
    q = apply_scope(q, p, Project.company_id)
    if search:
        q = q.where(Plot.plot_number.contains(search.strip()))
    if status is not None:
        q = q.where(Plot.status == status.value)
    if project_id is not None:
        q = q.where(Plot.project_id == int(project_id))

    total = int(db.scalar(select(func.count()).select_from(q.subquery())) or 0)
    rows = db.scalars(q.order_by(desc(Plot.created_at), desc(Plot.id)).offset(pg.offset).limit(pg.limit)).all()
    return {"data": list(rows), "meta": page_meta(total, pg)}


@router.get("/{plot_id}", response_model=PlotOut)
def get_plot(plot_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_any_role)):
    return must_get_plot(db, p, plot_id=plot_id)


@router.put("/{plot_id}", response_model=PlotOut)
def update_plot(plot_id: int, payload: PlotUpdate, db: Session = Depends(get_db), p: Principal = Depends(require_admin)):
    with atomic(db):
        row = must_get_plot(db, p, plot_id=plot_id)
        for k, v in payload.model_dump(exclude_none=True).items():
            setattr(row, k, v)
        db.add(row)
    return row


@router.delete("/{plot_id}", response_model=OkOut)
def delete_plot(plot_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_admin)):
    with atomic(db):
        row = must_get_plot(db, p, plot_id=plot_id, for_update=True)
        has_sale = db.scalar(select(Sale.id).where(Sale.plot_id == int(row.id), Sale.is_active.is_(True)))
        if has_sale:
            raise InvalidState("Cannot delete sold plot")
        has_booking = db.scalar(
            select(Booking.id).where(Booking.plot_id == int(row.id), Booking.status == BookingStatus.ACTIVE.value)
        )
        if has_booking:
            raise InvalidState("Cannot delete booked plot")
        row.is_active = False
        db.add(row)
    return {"ok": True, "message": "Plot deleted successfully"}

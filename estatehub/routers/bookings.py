# estatehub/routers/bookings.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session

from ..auth import Principal, require_any_role, require_roles
from ..db import get_db
from ..models import Booking, Plot, Project, Role
from ..pagination import PageParams, page_meta, page_params
from ..schemas import BookingCreate, BookingOut, Page
from ..services import lifecycle
from ..services.tenant_scope import apply_scope

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=BookingOut, status_code=201)
def create_booking(
    payload: BookingCreate,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_roles(Role.COMPANY_ADMIN, Role.AGENT)),
):
    return lifecycle.create_booking(
        db,
        p,
        plot_id=payload.plot_id,
        client_name=payload.client_name,
        amount=payload.amount,
    )


@router.patch("/{booking_id}/cancel", response_model=BookingOut)
def cancel_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_any_role),
):
    return lifecycle.cancel_booking(db, p, booking_id=booking_id)


@router.get("", response_model=Page[BookingOut])
def list_bookings(
    status: Optional[str] = Query(default=None, description="ACTIVE|CANCELLED"),
    plot_id: Optional[int] = Query(default=None, alias="plotId"),
    pg: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    p: Principal = Depends(require_any_role),
):
    q = select(Booking).join(Plot, Plot.id == Booking.plot_id).join(Project, Project.id == Plot.project_id)
    q = apply_scope(q, p, Project.company_id)
    if status:
        q = q.where(Booking.status == status.strip().upper())
    if plot_id is not None:
        q = q.where(Booking.plot_id == int(plot_id))

    total = int(db.scalar(select(func.count()).select_from(q.subquery())) or 0)
    rows = db.scalars(q.order_by(desc(Booking.id)).offset(pg.offset).limit(pg.limit)).all()
    return {"data": list(rows), "meta": page_meta(total, pg)}

# estatehub/routers/sales.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session

from ..auth import Principal, require_admin, require_any_role
from ..db import atomic, get_db
from ..domain.audit import audit_write
from ..models import Sale
from ..pagination import PageParams, page_meta, page_params
from ..schemas import OkOut, Page, SaleCreate, SaleOut, SaleUpdate
from ..services import lifecycle
from ..services.ownership import must_get_sale
from ..services.tenant_scope import apply_scope

router = APIRouter(prefix="/sales", tags=["sales"])


@router.post("", response_model=SaleOut, status_code=201)
def create_sale(payload: SaleCreate, db: Session = Depends(get_db), p: Principal = Depends(require_any_role)):
    # SUPER_ADMIN passes the role gate and is refused by the lifecycle engine (403)
    return lifecycle.create_sale(db, p, plot_id=payload.plot_id, amount=payload.amount)


@router.get("", response_model=Page[SaleOut])
def list_sales(
    date_from: Optional[datetime] = Query(default=None, alias="from"),
    date_to: Optional[datetime] = Query(default=None, alias="to"),
    pg: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    p: Principal = Depends(require_admin),
):
    q = apply_scope(select(Sale).where(Sale.is_active.is_(True)), p, Sale.company_id)
    if date_from is not None:
        q = q.where(Sale.created_at >= date_from)
    if date_to is not None:
        q = q.where(Sale.created_at <= date_to)

    total = int(db.scalar(select(func.count()).select_from(q.subquery())) or 0)
    rows = db.scalars(q.order_by(desc(Sale.created_at), desc(Sale.id)).offset(pg.offset).limit(pg.limit)).all()
    return {"data": list(rows), "meta": page_meta(total, pg)}


@router.get("/{sale_id}", response_model=SaleOut)
def get_sale(sale_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_admin)):
    return must_get_sale(db, p, sale_id=sale_id)


@router.put("/{sale_id}", response_model=SaleOut)
def update_sale(sale_id: int, payload: SaleUpdate, db: Session = Depends(get_db), p: Principal = Depends(require_admin)):
    with atomic(db):
        row = must_get_sale(db, p, sale_id=sale_id)
        before = {"amount": float(row.amount)}
        row.amount = float(payload.amount)
        db.add(row)
        audit_write(
            db,
            company_id=row.company_id,
            actor_user_id=p.user_id,
            action="sale.update",
            entity_type="Sale",
            entity_id=str(row.id),
            before=before,
            after={"amount": float(row.amount)},
        )
    return row


@router.delete("/{sale_id}", response_model=OkOut)
def delete_sale(sale_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_admin)):
    """Soft delete. The plot stays SOLD."""
    with atomic(db):
        row = must_get_sale(db, p, sale_id=sale_id)
        row.is_active = False
        db.add(row)
        audit_write(
            db,
            company_id=row.company_id,
            actor_user_id=p.user_id,
            action="sale.delete",
            entity_type="Sale",
            entity_id=str(row.id),
            before={"is_active": True},
            after={"is_active": False},
        )
    return {"ok": True, "message": "Sale deleted successfully"}

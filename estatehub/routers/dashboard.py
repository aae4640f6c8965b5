# estatehub/routers/dashboard.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..auth import Principal, require_admin
from ..db import get_db
from ..models import Company, Plot, PlotStatus, Project, Sale
from ..schemas import DashboardSummaryOut
from ..services.tenant_scope import apply_scope

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/summary", response_model=DashboardSummaryOut)
def summary(db: Session = Depends(get_db), p: Principal = Depends(require_admin)):
    total_companies = 0
    if p.is_super_admin:
        total_companies = int(db.scalar(select(func.count(Company.id)).where(Company.is_active.is_(True))) or 0)

    total_projects = int(
        db.scalar(
            apply_scope(
                select(func.count(Project.id)).where(Project.is_active.is_(True)),
                p,
                Project.company_id,
            )
        )
        or 0
    )

    plot_q = apply_scope(
        select(Plot.status, func.count(Plot.id))
        .join(Project, Project.id == Plot.project_id)
        .where(Plot.is_active.is_(True))
        .group_by(Plot.status),
        p,
        Project.company_id,
    )
    by_status = {str(status): int(n) for status, n in db.execute(plot_q).all()}

    sales_q = apply_scope(
        select(func.count(Sale.id), func.coalesce(func.sum(Sale.amount), 0.0)).where(Sale.is_active.is_(True)),
        p,
        Sale.company_id,
    )
    sales_count, revenue = db.execute(sales_q).one()

    return {
        "total_companies": total_companies,
        "total_projects": total_projects,
        "total_plots": sum(by_status.values()),
        "available_plots": by_status.get(PlotStatus.AVAILABLE.value, 0),
        "booked_plots": by_status.get(PlotStatus.BOOKED.value, 0),
        "sold_plots": by_status.get(PlotStatus.SOLD.value, 0),
        "total_sales_count": int(sales_count or 0),
        "total_revenue": float(revenue or 0.0),
    }

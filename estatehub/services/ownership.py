# estatehub/services/ownership.py
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Principal
from ..errors import NotFound
from ..models import Company, Project, Plot, Sale, User
from .tenant_scope import apply_scope


def must_get_company(db: Session, p: Principal, *, company_id: int) -> Company:
    stmt = apply_scope(
        select(Company).where(Company.id == int(company_id), Company.is_active.is_(True)),
        p,
        Company.id,
    )
    row = db.scalar(stmt)
    if not row:
        raise NotFound("Company not found")
    return row


def must_get_project(db: Session, p: Principal, *, project_id: int) -> Project:
    stmt = apply_scope(
        select(Project).where(Project.id == int(project_id), Project.is_active.is_(True)),
        p,
        Project.company_id,
    )
    row = db.scalar(stmt)
    if not row:
        raise NotFound("Project not found")
    return row


def must_get_plot(db: Session, p: Principal, *, plot_id: int, for_update: bool = False) -> Plot:
    """
    Plots carry no company_id; scope is resolved through the owning project.
    for_update=True takes a row lock on the plot (no-op on SQLite).
    """
    stmt = apply_scope(
        select(Plot)
        .join(Project, Project.id == Plot.project_id)
        .where(Plot.id == int(plot_id), Plot.is_active.is_(True)),
        p,
        Project.company_id,
    )
    if for_update:
        stmt = stmt.with_for_update(of=Plot).execution_options(populate_existing=True)
    row = db.scalar(stmt)
    if not row:
        raise NotFound("Plot not found or access denied")
    return row


def must_get_user(db: Session, p: Principal, *, user_id: int) -> User:
    stmt = apply_scope(
        select(User).where(User.id == int(user_id), User.is_active.is_(True)),
        p,
        User.company_id,
    )
    row = db.scalar(stmt)
    if not row:
        raise NotFound("User not found")
    return row


def must_get_sale(db: Session, p: Principal, *, sale_id: int) -> Sale:
    stmt = apply_scope(
        select(Sale).where(Sale.id == int(sale_id), Sale.is_active.is_(True)),
        p,
        Sale.company_id,
    )
    row = db.scalar(stmt)
    if not row:
        raise NotFound("Sale not found")
    return row

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from sqlalchemy import Select, true
from sqlalchemy.sql.elements import ColumnElement

from ..auth import Principal

# -----------------------------------------------------------------------------
# Tenant scope
# -----------------------------------------------------------------------------
# The only place that decides which company's rows a principal may touch.
# Every read/update/delete composes its select with scope_filter(); entities
# that do not carry company_id themselves (plots, bookings) pass the joined
# Project.company_id column.
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Unrestricted:
    pass


@dataclass(frozen=True)
class CompanyScope:
    company_id: int


TenantScope = Union[Unrestricted, CompanyScope]


def scope_for(principal: Principal) -> TenantScope:
    if principal.is_super_admin:
        return Unrestricted()
    return CompanyScope(company_id=int(principal.company_id))


def scope_filter(scope: TenantScope, column) -> ColumnElement[bool]:
    if isinstance(scope, Unrestricted):
        return true()
    return column == scope.company_id


def apply_scope(stmt: Select, principal: Principal, column) -> Select:
    scope = scope_for(principal)
    if isinstance(scope, Unrestricted):
        return stmt
    return stmt.where(scope_filter(scope, column))


def in_scope(principal: Principal, company_id: int | None) -> bool:
    """Row-level check for objects already loaded without a scoped query."""
    scope = scope_for(principal)
    if isinstance(scope, Unrestricted):
        return True
    return company_id is not None and int(company_id) == scope.company_id

# estatehub/schemas.py
from __future__ import annotations

from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import PlotStatus, Role

T = TypeVar("T")


class ApiModel(BaseModel):
    # camelCase on the wire, snake_case in Python
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# -------------------- Pagination --------------------

class PageMeta(ApiModel):
    total: int
    page: int
    limit: int
    total_pages: int


class Page(ApiModel, Generic[T]):
    data: List[T]
    meta: PageMeta


class OkOut(ApiModel):
    ok: bool = True
    message: Optional[str] = None


# -------------------- Auth --------------------

class LoginIn(ApiModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class UserSummary(ApiModel):
    id: int
    username: str
    role: str
    company_id: Optional[int] = None


class TokenOut(ApiModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class LoginOut(TokenOut):
    user: UserSummary


class PrincipalOut(ApiModel):
    user_id: int
    role: str
    company_id: Optional[int] = None


# -------------------- Companies --------------------

class CompanyCreate(ApiModel):
    name: str = Field(min_length=2, max_length=160)


class CompanyUpdate(CompanyCreate):
    pass


class CompanyOut(ApiModel):
    id: int
    name: str
    is_active: bool
    created_at: datetime


# -------------------- Users --------------------

class UserCreate(ApiModel):
    username: str = Field(min_length=3, max_length=120)
    password: str = Field(min_length=6)
    role: Role
    company_id: Optional[int] = None


class UserUpdate(ApiModel):
    username: Optional[str] = Field(default=None, min_length=3, max_length=120)
    password: Optional[str] = Field(default=None, min_length=6)
    role: Optional[Role] = None


class UserOut(ApiModel):
    id: int
    username: str
    role: str
    company_id: Optional[int] = None
    is_active: bool
    created_at: datetime


# -------------------- Projects --------------------

class ProjectCreate(ApiModel):
    name: str = Field(min_length=2, max_length=160)
    location: str = Field(min_length=2, max_length=255)
    # only honoured for SUPER_ADMIN; everyone else gets their own company
    company_id: Optional[int] = None


class ProjectUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=160)
    location: Optional[str] = Field(default=None, min_length=2, max_length=255)


class ProjectOut(ApiModel):
    id: int
    company_id: int
    name: str
    location: str
    is_active: bool
    created_at: datetime


class CompanyDetailOut(CompanyOut):
    users: List[UserOut] = Field(default_factory=list)
    projects: List[ProjectOut] = Field(default_factory=list)


# -------------------- Plots --------------------

class PlotCreate(ApiModel):
    project_id: int
    plot_number: str = Field(min_length=1, max_length=60)
    area: float = Field(gt=0)
    price: float = Field(gt=0)


class PlotUpdate(ApiModel):
    # no status field: only bookings/sales move it
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    plot_number: Optional[str] = Field(default=None, min_length=1, max_length=60)
    area: Optional[float] = Field(default=None, gt=0)
    price: Optional[float] = Field(default=None, gt=0)


class PlotOut(ApiModel):
    id: int
    project_id: int
    plot_number: str
    area: float
    price: float
    status: PlotStatus
    is_active: bool
    created_at: datetime


# -------------------- Bookings / Sales --------------------

class BookingCreate(ApiModel):
    plot_id: int
    client_name: str = Field(min_length=3, max_length=160)
    amount: float = Field(gt=0)


class BookingOut(ApiModel):
    id: int
    plot_id: int
    agent_id: int
    client_name: str
    amount: float
    status: str
    created_at: datetime
    cancelled_at: Optional[datetime] = None


class SaleCreate(ApiModel):
    plot_id: int
    amount: float = Field(gt=0)


class SaleUpdate(ApiModel):
    amount: float = Field(gt=0)


class SaleOut(ApiModel):
    id: int
    plot_id: int
    agent_id: int
    company_id: int
    amount: float
    is_active: bool
    created_at: datetime


# -------------------- Dashboard --------------------

class DashboardSummaryOut(ApiModel):
    total_companies: int
    total_projects: int
    total_plots: int
    available_plots: int
    booked_plots: int
    sold_plots: int
    total_sales_count: int
    total_revenue: float

# estatehub/auth.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header

from .errors import Forbidden, Unauthenticated
from .models import Role
from .services.tokens import decode_access_token


@dataclass(frozen=True)
class Principal:
    """Identity carried by a verified access token. Never persisted."""

    user_id: int
    role: str  # SUPER_ADMIN | COMPANY_ADMIN | AGENT
    company_id: Optional[int] = None

    @property
    def is_super_admin(self) -> bool:
        return self.role == Role.SUPER_ADMIN.value


def principal_from_claims(claims: dict) -> Principal:
    role = str(claims.get("role") or "")
    if role not in {r.value for r in Role}:
        raise Unauthenticated("Invalid token")

    cid = claims.get("cid")
    company_id = int(cid) if cid is not None else None
    if role != Role.SUPER_ADMIN.value and company_id is None:
        # tenant roles without a tenant would see everything
        raise Unauthenticated("Invalid token")

    return Principal(user_id=int(claims["sub"]), role=role, company_id=company_id)


def get_principal(
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> Principal:
    """
    Stateless bearer auth: signature + expiry only, no storage lookup.
    """
    if not authorization or not str(authorization).lower().startswith("bearer "):
        raise Unauthenticated()

    token = str(authorization).split(" ", 1)[1].strip()
    if not token:
        raise Unauthenticated()

    return principal_from_claims(decode_access_token(token))


def require_roles(*roles: Role):
    allowed = {r.value for r in roles}

    def _dep(p: Principal = Depends(get_principal)) -> Principal:
        if p.role not in allowed:
            raise Forbidden(f"Requires role in {sorted(allowed)}")
        return p

    return _dep


require_admin = require_roles(Role.SUPER_ADMIN, Role.COMPANY_ADMIN)
require_super_admin = require_roles(Role.SUPER_ADMIN)
require_any_role = require_roles(Role.SUPER_ADMIN, Role.COMPANY_ADMIN, Role.AGENT)

from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

import jwt  # PyJWT
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import Unauthenticated
from ..models import RefreshToken, utcnow


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int


# -------------------------
# Access tokens (stateless)
# -------------------------
def create_access_token(*, user_id: int, role: str, company_id: Optional[int], now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "uid": int(user_id),
        "role": str(role),
        "cid": int(company_id) if company_id is not None else None,
        "typ": "access",
        "iss": settings.jwt_issuer,
        "iat": int(_epoch(now)),
        "exp": int(_epoch(now + timedelta(minutes=int(settings.access_token_minutes)))),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """Signature + expiry check. Raises Unauthenticated on any failure."""
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"require": ["exp", "sub", "role"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise Unauthenticated("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise Unauthenticated("Invalid token") from exc

    if claims.get("typ") != "access":
        raise Unauthenticated("Invalid token")
    return dict(claims)


def _epoch(dt: datetime) -> float:
    # naive datetimes here are UTC
    return (dt - datetime(1970, 1, 1)).total_seconds()


# -------------------------
# Refresh tokens (opaque, persisted)
# -------------------------
def new_refresh_token() -> str:
    # 48 bytes = 384 bits of randomness
    return secrets.token_urlsafe(48)


def hash_refresh_token(raw: str) -> str:
    # token_hash = HMAC(pepper, raw); raw values never reach the database
    digest = hmac.new(settings.refresh_token_pepper.encode(), raw.encode(), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).decode()


def refresh_token_expiry(now: Optional[datetime] = None) -> datetime:
    return (now or utcnow()) + timedelta(days=int(settings.refresh_token_days))


def persist_refresh_token(db: Session, *, user_id: int, company_id: Optional[int]) -> tuple[str, RefreshToken]:
    """
    Adds a new active RefreshToken row (flush only, no commit).
    Returns the raw token, which is the only copy that will ever exist.
    """
    raw = new_refresh_token()
    now = utcnow()
    row = RefreshToken(
        token_hash=hash_refresh_token(raw),
        user_id=int(user_id),
        company_id=int(company_id) if company_id is not None else None,
        expires_at=refresh_token_expiry(now),
        is_active=True,
        created_at=now,
    )
    db.add(row)
    db.flush()
    return raw, row


def issue_token_pair(db: Session, *, user_id: int, role: str, company_id: Optional[int]) -> TokenPair:
    """
    Mint an access token and persist a fresh refresh token for the user.
    Caller owns the transaction boundary.
    """
    raw, _row = persist_refresh_token(db, user_id=user_id, company_id=company_id)
    access = create_access_token(user_id=user_id, role=role, company_id=company_id)
    return TokenPair(
        access_token=access,
        refresh_token=raw,
        expires_in=int(settings.access_token_minutes) * 60,
    )

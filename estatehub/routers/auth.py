# estatehub/routers/auth.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Response
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..config import settings
from ..db import get_db
from ..errors import InvalidOrExpired
from ..schemas import LoginIn, LoginOut, OkOut, PrincipalOut, TokenOut
from ..services.auth_service import login as login_user, revoke_refresh_token, rotate_refresh_token

router = APIRouter(prefix="/auth", tags=["auth"])


def _set_refresh_cookie(response: Response, raw: str) -> None:
    response.set_cookie(
        settings.refresh_cookie_name,
        raw,
        httponly=True,
        secure=bool(settings.refresh_cookie_secure),
        samesite=str(settings.refresh_cookie_samesite),
        max_age=settings.refresh_cookie_max_age,
        path=settings.refresh_cookie_path,
    )


def _clear_refresh_cookie(response: Response) -> None:
    response.delete_cookie(settings.refresh_cookie_name, path=settings.refresh_cookie_path)


def _refresh_cookie(
    refresh_token: Optional[str] = Cookie(default=None, alias=settings.refresh_cookie_name),
) -> Optional[str]:
    return refresh_token


@router.post("/login", response_model=LoginOut)
def login(payload: LoginIn, response: Response, db: Session = Depends(get_db)):
    """
    Verifies credentials, returns the access token in the body and the
    refresh token as an HttpOnly cookie scoped to the auth routes.
    """
    result = login_user(db, username=payload.username, password=payload.password)
    _set_refresh_cookie(response, result.tokens.refresh_token)
    return {
        "access_token": result.tokens.access_token,
        "expires_in": result.tokens.expires_in,
        "user": result.user,
    }


@router.post("/refresh", response_model=TokenOut)
def refresh(
    response: Response,
    raw: Optional[str] = Depends(_refresh_cookie),
    db: Session = Depends(get_db),
):
    """
    Rotates the refresh cookie. Replaying an already-rotated token revokes
    every session of that user before answering 401.
    """
    if not raw:
        raise InvalidOrExpired("No refresh token provided")

    pair = rotate_refresh_token(db, raw)
    _set_refresh_cookie(response, pair.refresh_token)
    return {"access_token": pair.access_token, "expires_in": pair.expires_in}


@router.post("/logout", response_model=OkOut)
def logout(
    response: Response,
    raw: Optional[str] = Depends(_refresh_cookie),
    db: Session = Depends(get_db),
):
    revoke_refresh_token(db, raw)
    _clear_refresh_cookie(response)
    return {"ok": True, "message": "Logged out successfully"}


@router.get("/me", response_model=PrincipalOut)
def me(p: Principal = Depends(get_principal)):
    return PrincipalOut(user_id=p.user_id, role=p.role, company_id=p.company_id)

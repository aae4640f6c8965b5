# estatehub/services/auth_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session, joinedload

from ..config import settings
from ..db import atomic
from ..domain.audit import audit_write
from ..errors import InvalidCredentials, InvalidOrExpired, ReuseDetected, UserDisabled
from ..models import RefreshToken, User, utcnow
from .passwords import burn_verify, verify_password
from .tokens import TokenPair, create_access_token, hash_refresh_token, issue_token_pair, persist_refresh_token

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginResult:
    tokens: TokenPair
    user: dict[str, Any]


def _user_summary(user: User) -> dict[str, Any]:
    return {
        "id": int(user.id),
        "username": str(user.username),
        "role": str(user.role),
        "companyId": int(user.company_id) if user.company_id is not None else None,
    }


# -------------------------
# Credential verification
# -------------------------
def verify_credentials(db: Session, *, username: str, password: str) -> User:
    """
    Same failure for unknown user, inactive user and wrong password, so the
    response cannot be used to enumerate usernames.
    """
    user = db.scalar(select(User).where(User.username == (username or "").strip()))
    if user is None:
        burn_verify(password or "")
        log.info("login failed", extra={"error_kind": "unknown_user"})
        raise InvalidCredentials()

    ok = verify_password(password or "", str(user.password_hash))
    if not ok or not user.is_active:
        log.info("login failed", extra={"error_kind": "bad_password" if not ok else "inactive_user", "user_id": int(user.id)})
        raise InvalidCredentials()

    return user


def login(db: Session, *, username: str, password: str) -> LoginResult:
    with atomic(db):
        user = verify_credentials(db, username=username, password=password)
        tokens = issue_token_pair(db, user_id=int(user.id), role=str(user.role), company_id=user.company_id)
        user.last_login_at = utcnow()
        db.add(user)
        summary = _user_summary(user)

    log.info("login ok", extra={"user_id": summary["id"], "company_id": summary["companyId"]})
    return LoginResult(tokens=tokens, user=summary)


# -------------------------
# Refresh rotation + reuse detection
# -------------------------
def _find_refresh_token(db: Session, raw_token: str) -> Optional[RefreshToken]:
    if not raw_token:
        return None
    return db.scalar(
        select(RefreshToken)
        .options(joinedload(RefreshToken.user))
        .where(RefreshToken.token_hash == hash_refresh_token(raw_token))
        .execution_options(populate_existing=True)
    )


def _claim_refresh_token(db: Session, token_id: int) -> bool:
    """
    Compare-and-set active -> inactive. Exactly one concurrent caller can win;
    everyone else sees rowcount == 0.
    """
    res = db.execute(
        update(RefreshToken)
        .where(RefreshToken.id == int(token_id), RefreshToken.is_active.is_(True))
        .values(is_active=False, revoked_at=utcnow(), revoked_reason="rotated")
        .execution_options(synchronize_session=False)
    )
    return int(res.rowcount or 0) == 1


def revoke_all_for_user(db: Session, *, user_id: int, reason: str) -> int:
    """Deactivate every still-active refresh token of the user. Flush only."""
    res = db.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == int(user_id), RefreshToken.is_active.is_(True))
        .values(is_active=False, revoked_at=utcnow(), revoked_reason=reason)
        .execution_options(synchronize_session=False)
    )
    return int(res.rowcount or 0)


def _contain_reuse(db: Session, *, user_id: int, company_id: Optional[int], token_id: int) -> None:
    with atomic(db):
        revoked = revoke_all_for_user(db, user_id=user_id, reason="reuse_detected")
        audit_write(
            db,
            company_id=company_id,
            actor_user_id=None,
            action="auth.refresh_reuse_detected",
            entity_type="User",
            entity_id=str(user_id),
            after={"replayed_token_id": int(token_id), "revoked_tokens": revoked},
        )

    log.warning(
        "refresh token reuse detected, revoked %s token(s)",
        revoked,
        extra={"user_id": int(user_id), "company_id": company_id, "error_kind": "reuse_detected"},
    )


def rotate_refresh_token(db: Session, raw_token: str) -> TokenPair:
    """
    Exchange a refresh token for a new access/refresh pair.

    Order matters:
      1) look the row up by exact digest match
      2) found but inactive -> reuse: revoke the user's whole token set, fail ReuseDetected
      3) missing or expired -> InvalidOrExpired
      4) owner inactive -> UserDisabled
      5) deactivate old row + insert new row + mint access token, atomically

    If step 5 loses a race against a concurrent rotation of the same token,
    the token is already inactive by the time we try to claim it, which is a
    replay by definition and is handled exactly like step 2.

    ReuseDetected is the only failure with a committed side effect.
    """
    reused: Optional[RefreshToken] = None

    with atomic(db):
        row = _find_refresh_token(db, raw_token)

        if row is not None and not row.is_active:
            reused = row
        else:
            if row is None or row.expires_at < utcnow():
                log.info("refresh rejected", extra={"error_kind": "invalid_or_expired"})
                raise InvalidOrExpired()

            user = row.user
            if user is None or not user.is_active:
                log.info("refresh rejected", extra={"error_kind": "user_disabled", "user_id": int(row.user_id)})
                raise UserDisabled()

            if not _claim_refresh_token(db, int(row.id)):
                reused = row
            else:
                raw, _new_row = persist_refresh_token(db, user_id=int(user.id), company_id=row.company_id)
                access = create_access_token(user_id=int(user.id), role=str(user.role), company_id=user.company_id)
                pair = TokenPair(
                    access_token=access,
                    refresh_token=raw,
                    expires_in=int(settings.access_token_minutes) * 60,
                )

    if reused is not None:
        _contain_reuse(db, user_id=int(reused.user_id), company_id=reused.company_id, token_id=int(reused.id))
        raise ReuseDetected()

    log.info("refresh rotated", extra={"user_id": int(user.id), "company_id": user.company_id})
    return pair


def revoke_refresh_token(db: Session, raw_token: Optional[str]) -> bool:
    """
    Logout: deactivate one token. Unknown or already-inactive tokens are not an
    error and nothing cascades. Returns True when a row was changed.
    """
    if not raw_token:
        return False

    with atomic(db):
        res = db.execute(
            update(RefreshToken)
            .where(RefreshToken.token_hash == hash_refresh_token(raw_token), RefreshToken.is_active.is_(True))
            .values(is_active=False, revoked_at=utcnow(), revoked_reason="logout")
            .execution_options(synchronize_session=False)
        )
        changed = int(res.rowcount or 0) > 0

    return changed

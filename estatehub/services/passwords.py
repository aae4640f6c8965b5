# estatehub/services/passwords.py
from __future__ import annotations

import base64
import hashlib
import hmac
import secrets

from ..config import settings


def hash_password(password: str) -> str:
    salt = secrets.token_bytes(16)
    iters = int(settings.password_pbkdf2_iters)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iters)
    return f"pbkdf2_sha256${iters}${base64.b64encode(salt).decode()}${base64.b64encode(dk).decode()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        algo, iters_s, salt_b64, dk_b64 = stored.split("$", 3)
        if algo != "pbkdf2_sha256":
            return False
        iters = int(iters_s)
        salt = base64.b64decode(salt_b64.encode())
        dk = base64.b64decode(dk_b64.encode())
    except (ValueError, TypeError):
        # malformed hash never matches
        return False

    test = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iters)
    return hmac.compare_digest(test, dk)


# Spent on unknown usernames so both failure paths cost one PBKDF2 run.
_DUMMY_HASH: str | None = None


def burn_verify(password: str) -> None:
    global _DUMMY_HASH
    if _DUMMY_HASH is None:
        _DUMMY_HASH = hash_password(secrets.token_urlsafe(16))
    verify_password(password, _DUMMY_HASH)

from __future__ import annotations

from typing import Optional


class ServiceError(Exception):
    """Base class for service-layer failures that callers can recover from.

    Every subclass carries a stable ``kind`` (machine readable), the HTTP
    ``status_code`` it renders as, and whether retrying the same request may
    succeed (``retryable``).
    """

    status_code: int = 400
    kind: str = "validation_error"
    retryable: bool = False

    def __init__(self, message: str, *, detail: Optional[dict] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


# -------------------------
# Authentication failures
# -------------------------
class AuthError(ServiceError):
    """Rendered to clients as a generic 401 so the precise cause never leaks."""

    status_code = 401
    kind = "unauthorized"


class InvalidCredentials(AuthError):
    kind = "invalid_credentials"

    def __init__(self, message: str = "Invalid credentials", **kw) -> None:
        super().__init__(message, **kw)


class InvalidOrExpired(AuthError):
    kind = "invalid_or_expired"

    def __init__(self, message: str = "Invalid or expired refresh token", **kw) -> None:
        super().__init__(message, **kw)


class ReuseDetected(AuthError):
    """A revoked refresh token was presented again.

    Raised only after every refresh token of the owning user has been revoked,
    so this failure has a committed side effect.
    """

    kind = "reuse_detected"

    def __init__(self, message: str = "Refresh token reuse detected. All sessions revoked.", **kw) -> None:
        super().__init__(message, **kw)


class UserDisabled(AuthError):
    kind = "user_disabled"

    def __init__(self, message: str = "User account is disabled", **kw) -> None:
        super().__init__(message, **kw)


class Unauthenticated(AuthError):
    kind = "unauthenticated"

    def __init__(self, message: str = "Not authenticated", **kw) -> None:
        super().__init__(message, **kw)


# -------------------------
# Resource / state failures
# -------------------------
class NotFound(ServiceError):
    status_code = 404
    kind = "not_found"


class Forbidden(ServiceError):
    status_code = 403
    kind = "forbidden"


class InvalidState(ServiceError):
    status_code = 409
    kind = "invalid_state"


class AlreadyCancelled(ServiceError):
    status_code = 409
    kind = "already_cancelled"

    def __init__(self, message: str = "Booking already cancelled", **kw) -> None:
        super().__init__(message, **kw)


class ValidationFailed(ServiceError):
    status_code = 400
    kind = "validation_error"


class Conflict(ServiceError):
    status_code = 409
    kind = "conflict"


class TransactionConflict(ServiceError):
    """The store aborted the transaction (deadlock, serialization failure, lock timeout)."""

    status_code = 503
    kind = "transaction_conflict"
    retryable = True

    def __init__(self, message: str = "Concurrent update conflict, retry the request", **kw) -> None:
        super().__init__(message, **kw)


__all__ = [
    "ServiceError",
    "AuthError",
    "InvalidCredentials",
    "InvalidOrExpired",
    "ReuseDetected",
    "UserDisabled",
    "Unauthenticated",
    "NotFound",
    "Forbidden",
    "InvalidState",
    "AlreadyCancelled",
    "ValidationFailed",
    "Conflict",
    "TransactionConflict",
]

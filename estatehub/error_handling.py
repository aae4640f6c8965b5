from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import settings
from .errors import AuthError, ServiceError, ValidationFailed

log = logging.getLogger(__name__)


def _error_response(status_code: int, message: str, kind: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": message, "kind": kind}, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """Map service-layer failures onto stable JSON error bodies."""

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError):
        # never tell the client which precondition failed
        log.info(
            "auth_error",
            extra={"path": request.url.path, "method": request.method, "error_kind": exc.kind},
        )
        resp = _error_response(401, "Unauthorized", "unauthorized", headers={"WWW-Authenticate": "Bearer"})
        if request.url.path == f"{settings.refresh_cookie_path}/refresh":
            # drop the rejected cookie
            resp.delete_cookie(settings.refresh_cookie_name, path=settings.refresh_cookie_path)
        return resp

    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError):
        log_fn = log.warning if exc.retryable or exc.status_code >= 500 else log.info
        log_fn(
            "service_error: %s",
            exc.message,
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": exc.status_code,
                "error_kind": exc.kind,
            },
        )
        headers = {"Retry-After": "1"} if exc.retryable else None
        return _error_response(exc.status_code, exc.message, exc.kind, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = [
            {"field": ".".join(str(x) for x in e.get("loc", ()) if x != "body"), "message": e.get("msg", "")}
            for e in exc.errors()
        ]
        return JSONResponse(
            status_code=ValidationFailed.status_code,
            content={"detail": "Validation failed", "kind": ValidationFailed.kind, "errors": errors},
        )

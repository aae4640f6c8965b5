# estatehub/middleware/request_id.py
from __future__ import annotations

import re
import uuid
from contextvars import ContextVar
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

_SAFE_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def get_request_id() -> str | None:
    return request_id_ctx.get()


def clean_request_id(raw: str | None) -> str:
    """Returns the inbound id if it is a short plain token, else a fresh UUID4."""
    if raw and _SAFE_ID.match(raw):
        return raw
    return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Tags each request with an id for log correlation.

    - Reuses an inbound X-Request-ID when it is 1-64 chars of [A-Za-z0-9._-]
    - Otherwise generates UUID4
    - Exposes it via request_id_ctx (log records) and request.state
    """

    header_out = "X-Request-ID"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = clean_request_id(request.headers.get(self.header_out))
        request.state.request_id = rid
        token = request_id_ctx.set(rid)
        try:
            resp = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        resp.headers[self.header_out] = rid
        return resp

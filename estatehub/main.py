# estatehub/main.py
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .error_handling import register_exception_handlers
from .logging_config import configure_logging

from .middleware.request_id import RequestIDMiddleware
from .middleware.structured_logging import StructuredLoggingMiddleware

from .routers.health import router as health_router
from .routers.auth import router as auth_router
from .routers.companies import router as companies_router
from .routers.users import router as users_router
from .routers.projects import router as projects_router
from .routers.plots import router as plots_router
from .routers.bookings import router as bookings_router
from .routers.sales import router as sales_router
from .routers.dashboard import router as dashboard_router

API_PREFIX = "/api"


def _cors_origins() -> list[str]:
    val = settings.cors_allow_origins
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    return list(val or [])


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title="EstateHub API", version="1.0.0")

    # added last runs first: request id wraps logging
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(health_router)

    # Auth
    app.include_router(auth_router, prefix=API_PREFIX)

    # Tenants + identities
    app.include_router(companies_router, prefix=API_PREFIX)
    app.include_router(users_router, prefix=API_PREFIX)

    # Inventory
    app.include_router(projects_router, prefix=API_PREFIX)
    app.include_router(plots_router, prefix=API_PREFIX)

    # Lifecycle
    app.include_router(bookings_router, prefix=API_PREFIX)
    app.include_router(sales_router, prefix=API_PREFIX)

    app.include_router(dashboard_router, prefix=API_PREFIX)
    return app


app = create_app()

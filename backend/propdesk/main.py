# backend/propdesk/main.py
from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .bootstrap import Runtime, build_runtime
from .config import settings
from .logging_config import configure_logging
from .middleware.request_context import RequestContextMiddleware
from .middleware.structured_logging import StructuredLoggingMiddleware
from .routers.compliance import router as compliance_router
from .routers.health import router as health_router
from .routers.jobs import router as jobs_router
from .routers.properties import router as properties_router
from .routers.reports import router as reports_router

API_PREFIX = "/api"


def _cors_origins() -> list[str]:
    val = getattr(settings, "cors_allow_origins", ["*"])
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


def create_app(runtime: Optional[Runtime] = None) -> FastAPI:
    """
    Builds the HTTP adapter around one engine. Tests pass their own runtime
    (memory store, fixed clock); the server builds one from settings.
    """
    app = FastAPI(
        title="Propdesk Compliance Engine",
        version=getattr(settings, "engine_version", "dev"),
    )
    app.state.runtime = runtime or build_runtime(settings)

    # added last = outermost: request context is bound before the access log line
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(RequestContextMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(properties_router, prefix=API_PREFIX)
    app.include_router(jobs_router, prefix=API_PREFIX)
    app.include_router(compliance_router, prefix=API_PREFIX)
    app.include_router(reports_router, prefix=API_PREFIX)
    return app


def app_factory() -> FastAPI:
    """uvicorn entry point: `uvicorn propdesk.main:app_factory --factory`."""
    configure_logging()
    return create_app()

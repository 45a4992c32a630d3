# tenancy_engine/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .domain.errors import LifecycleError
from .logging_config import configure_logging
from .middleware.request_id import RequestIDMiddleware
from .middleware.structured_logging import StructuredLoggingMiddleware

from .routers.health import router as health_router
from .routers.applications import router as applications_router
from .routers.viewings import router as viewings_router
from .routers.contracts import router as contracts_router
from .routers.payments import router as payments_router
from .routers.key_collections import router as key_collections_router
from .routers.tenant_scores import router as tenant_scores_router
from .routers.audit import router as audit_router

API_PREFIX = "/api"

log = logging.getLogger("tenancy_engine.api")


def _cors_origins() -> list[str]:
    val = settings.cors_allow_origins
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


async def lifecycle_error_handler(request: Request, exc: LifecycleError) -> JSONResponse:
    request.state.error_code = exc.code
    log.info(
        "lifecycle request rejected: %s",
        exc.code,
        extra={"error_code": exc.code, "current_state": exc.current_state},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"error": "invalid_input", "detail": str(exc)})


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title="Tenancy Lifecycle Engine", version=settings.engine_version)

    # Starlette runs the last-added middleware first; request id must wrap the request log.
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(LifecycleError, lifecycle_error_handler)
    app.add_exception_handler(ValueError, value_error_handler)

    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(applications_router, prefix=API_PREFIX)
    app.include_router(viewings_router, prefix=API_PREFIX)
    app.include_router(contracts_router, prefix=API_PREFIX)
    app.include_router(payments_router, prefix=API_PREFIX)
    app.include_router(key_collections_router, prefix=API_PREFIX)
    app.include_router(tenant_scores_router, prefix=API_PREFIX)
    app.include_router(audit_router, prefix=API_PREFIX)

    return app


app = create_app()

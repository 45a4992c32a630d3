# tenancy_engine/middleware/structured_logging.py
from __future__ import annotations

import logging
import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..config import settings

log = logging.getLogger("tenancy_engine.request")


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    One log line per request: method, path, status, latency, caller email
    (dev headers only) and, for rejected lifecycle operations, the error code
    the exception handler left on request.state.

    Runs inside RequestIDMiddleware, so the request id is already set.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        t0 = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            level = logging.WARNING if status_code >= 500 else logging.INFO
            log.log(
                level,
                "http_request",
                extra={
                    "request_id": getattr(request.state, "request_id", None),
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": status_code,
                    "latency_ms": int((time.perf_counter() - t0) * 1000),
                    "user_email": request.headers.get(settings.dev_header_user_email),
                    "error_code": getattr(request.state, "error_code", None),
                },
            )

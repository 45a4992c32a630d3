# tenancy_engine/middleware/request_id.py
from __future__ import annotations

import uuid
from contextvars import ContextVar
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)


def get_request_id() -> str | None:
    return request_id_ctx.get()


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Honours an incoming X-Request-ID (webhook redeliveries can carry
    their own) or mints a UUID4, echoes it on the response, and exposes it to
    the log formatter and to request.state.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = (request.headers.get(REQUEST_ID_HEADER) or "").strip() or str(uuid.uuid4())
        request.state.request_id = rid

        token = request_id_ctx.set(rid)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        response.headers[REQUEST_ID_HEADER] = rid
        return response

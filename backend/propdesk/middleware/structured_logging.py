# backend/propdesk/middleware/structured_logging.py
from __future__ import annotations

import logging
import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

log = logging.getLogger("propdesk.request")


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    One access log line per request: method, path, status_code, latency_ms.

    Runs inside RequestContextMiddleware; request_id and actor are added by
    the JSON formatter from the request context.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        t0 = time.time()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            log.info(
                "%s %s -> %d",
                request.method,
                request.url.path,
                status_code,
                extra={
                    "event_type": "http_request",
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": status_code,
                    "latency_ms": int((time.time() - t0) * 1000),
                },
            )

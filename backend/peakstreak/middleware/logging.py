"""
PeakStreak Backend: Access Log Middleware
==========================================

What:  One line on the `peakstreak.access` logger per finished request.
Why:   uvicorn's access log carries neither the request id nor the time the
       app spent on the request.

Line format:
    GET /api/users/alice → 200 in 12.3ms [a1b2c3d4] (10.0.0.7)

Severity follows the status class: 5xx ERROR, 4xx WARNING, the rest INFO.
Request bodies and the Authorization header are never logged.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from peakstreak.middleware.request_id import request_id_var

access_logger = logging.getLogger("peakstreak.access")

# Polled by load balancers; logging them drowns everything else
QUIET_PATHS = frozenset({"/health"})


def level_for_status(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        peer = request.client.host if request.client else "-"
        access_logger.log(
            level_for_status(response.status_code),
            "%s %s → %d in %.1fms [%s] (%s)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request_id_var.get(""),
            peer,
        )
        return response

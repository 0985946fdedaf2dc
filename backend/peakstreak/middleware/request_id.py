"""
PeakStreak Backend: Request ID Middleware
==========================================

What:  Tags each request with a correlation id and returns it in the
       `X-Request-ID` response header.
How:   A client-supplied `X-Request-ID` (cut to 64 chars) is reused;
       otherwise a fresh 8-char id is minted. The id lives in a ContextVar
       so the access log, the deadline middleware and the exception handlers
       can all read it.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
MAX_CLIENT_ID_LENGTH = 64

# Each request's task sees its own value
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        supplied = request.headers.get(REQUEST_ID_HEADER, "").strip()
        rid = supplied[:MAX_CLIENT_ID_LENGTH] or new_request_id()

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = rid
        return response

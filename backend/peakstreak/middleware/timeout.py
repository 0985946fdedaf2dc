"""
PeakStreak Backend: Request Deadline Middleware
================================================

What:  Bounds every HTTP request to `request_timeout_seconds` (default 60s).
Why:   The services have no timeouts of their own; a profile aggregation and
       its concurrent sub-reads inherit this one deadline. When it fires the
       handler is cancelled, which cancels any in-flight reads with it.
How:   A plain ASGI middleware (not BaseHTTPMiddleware) so the route handler
       runs in the same task as `asyncio.timeout()` and receives the
       cancellation directly. Expiry before the response has started becomes
       a 504 with the standard error body; expiry mid-stream just aborts.
"""

import asyncio
import logging

from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from peakstreak.exceptions import DeadlineExceededError
from peakstreak.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)


class TimeoutMiddleware:
    def __init__(self, app: ASGIApp, timeout_seconds: float = 60.0):
        self.app = app
        self.timeout_seconds = timeout_seconds

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            async with asyncio.timeout(self.timeout_seconds):
                await self.app(scope, receive, send_wrapper)
        except TimeoutError:
            rid = request_id_var.get("")
            logger.error(
                "[%s] %s %s exceeded %.1fs deadline",
                rid,
                scope.get("method", ""),
                scope.get("path", ""),
                self.timeout_seconds,
            )
            if response_started:
                raise
            err = DeadlineExceededError()
            response = JSONResponse(
                status_code=504,
                content={"error": err.kind.value, "message": err.message, "request_id": rid},
            )
            await response(scope, receive, send)

"""
PeakStreak Backend: Health Check Route
=======================================

What:  GET /health for Docker and load balancer health checks.
How:   Runs `SELECT 1` on the app's engine. A backend that cannot reach its
       database is reported unhealthy.

    Status levels:
    - healthy:   database reachable
    - unhealthy: database unreachable (or no engine configured)
"""

import logging
import time

from fastapi import APIRouter, Request
from sqlalchemy import text

from peakstreak import __version__
from peakstreak.schemas import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health_check(request: Request) -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        db_status = "disconnected"
        overall = "unhealthy"
    else:
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as e:
            db_status = "disconnected"
            overall = "unhealthy"
            logger.warning("Health check: database unreachable: %s", str(e))

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )

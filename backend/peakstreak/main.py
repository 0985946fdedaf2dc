"""
PeakStreak Backend: FastAPI Application Factory
================================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes wiring (engine, gateway, services), middleware, routes and
       lifecycle management in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   uvicorn (`uvicorn peakstreak.main:app`) and the HTTP tests.

Application Architecture:
    ┌──────────────────────────────────────────────────────┐
    │                    FastAPI App                       │
    │                                                      │
    │  Middleware Chain:                                   │
    │  ┌──────────┐ ┌──────────┐ ┌──────────┐ ┌─────────┐  │
    │  │  Req ID  │→│ Logging  │→│ Timeout  │→│GZip/CORS│  │
    │  └──────────┘ └──────────┘ └──────────┘ └─────────┘  │
    │                                                      │
    │  app.state:                                          │
    │    settings, engine, gateway, token_codec,           │
    │    account/habit/profile/social services             │
    │                                                      │
    │  Exception Handlers:                                 │
    │  ┌────────────────────────────────────────────────┐  │
    │  │ PeakStreakError → status by kind │ other → 500 │  │
    │  └────────────────────────────────────────────────┘  │
    └──────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  configure logging, warn about insecure settings, log ready
    Shutdown: dispose the database engine (close pooled connections)
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from peakstreak import __version__
from peakstreak.config import Settings, get_settings
from peakstreak.database import create_engine, create_session_factory, dispose_engine
from peakstreak.exceptions import ErrorKind, InternalError, PeakStreakError
from peakstreak.gateway import PersistenceGateway, SQLAlchemyGateway
from peakstreak.middleware.logging import RequestLoggingMiddleware
from peakstreak.middleware.request_id import RequestIDMiddleware, request_id_var
from peakstreak.middleware.timeout import TimeoutMiddleware
from peakstreak.routes import auth, feed, habits, health, users
from peakstreak.security import PasswordHasher, TokenCodec
from peakstreak.services import AccountService, HabitService, ProfileService, SocialService
from peakstreak.storage import BlobStore, LocalBlobStore

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.ACCESS_DENIED: 403,
    ErrorKind.DUPLICATE_USERNAME: 409,
    ErrorKind.DUPLICATE_EMAIL: 409,
    ErrorKind.INVALID_CREDENTIALS: 401,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.CANNOT_FOLLOW_SELF: 400,
    ErrorKind.VALIDATION: 400,
    ErrorKind.CANCELLED: 503,
    ErrorKind.DEADLINE_EXCEEDED: 504,
    ErrorKind.INTERNAL: 500,
}


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure logging for the entire application, once, at startup.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(settings.log_level)
    logger.info("=" * 60)
    logger.info("PeakStreak Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: a dev setup with the default secret is still usable
        logger.error("Configuration error: %s", str(e))

    logger.info("Avatar storage: %s", Path(settings.storage_root).resolve())
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("PeakStreak Backend shutting down...")
    if app.state.engine is not None:
        await dispose_engine(app.state.engine)
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map errors to HTTP responses in one place.

    PeakStreakError → status from STATUS_BY_KIND, body
        {"error": kind, "message": ..., "request_id": ...}
    Exception (fallback) → 500, stack trace logged server-side only

    INTERNAL errors never echo their message; `context` is logged, never
    returned.
    """

    @app.exception_handler(PeakStreakError)
    async def handle_app_error(request: Request, exc: PeakStreakError):
        rid = request_id_var.get("")
        status_code = STATUS_BY_KIND.get(exc.kind, 500)

        if status_code >= 500:
            logger.error(
                "[%s] %s: %s | Context: %s",
                rid,
                exc.kind.value,
                exc.message,
                exc.context,
                exc_info=exc.__cause__ is not None,
            )
        else:
            logger.warning("[%s] %s: %s", rid, exc.kind.value, exc.message)

        content = {
            "error": exc.kind.value,
            "message": InternalError.default_message if exc.kind is ErrorKind.INTERNAL else exc.message,
            "request_id": rid,
        }
        if exc.kind is ErrorKind.VALIDATION and exc.context.get("field"):
            content["details"] = {"field": exc.context["field"]}

        headers = {"WWW-Authenticate": "Bearer"} if exc.kind is ErrorKind.UNAUTHENTICATED else None
        return JSONResponse(status_code=status_code, content=content, headers=headers)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again or contact support.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    settings: Optional[Settings] = None,
    gateway: Optional[PersistenceGateway] = None,
    blob_store: Optional[BlobStore] = None,
) -> FastAPI:
    """
    Assemble the application.

    Args:
        settings:   Defaults to the environment-loaded `get_settings()`.
        gateway:    Defaults to a SQLAlchemyGateway over a new engine built
                    from `settings.database_url`. When one is passed in, no
                    engine is created (and /health reports the database as
                    disconnected).
        blob_store: Defaults to a LocalBlobStore under `settings.storage_root`.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="PeakStreak API",
        description="Habit tracking with streaks, followers, a leaderboard and an explore feed.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Wiring ────────────────────────────────────────────────────────────
    engine = None
    if gateway is None:
        engine = create_engine(settings)
        gateway = SQLAlchemyGateway(create_session_factory(engine))
    if blob_store is None:
        blob_store = LocalBlobStore(settings.storage_root, settings.avatar_public_url)

    habit_service = HabitService(gateway)
    app.state.settings = settings
    app.state.engine = engine
    app.state.gateway = gateway
    app.state.token_codec = TokenCodec(
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        expires_minutes=settings.jwt_expires_minutes,
    )
    app.state.habit_service = habit_service
    app.state.profile_service = ProfileService(
        gateway,
        habit_service,
        log_window_days=settings.profile_log_window_days,
    )
    app.state.account_service = AccountService(
        gateway,
        PasswordHasher(rounds=settings.bcrypt_rounds),
        blob_store,
        max_avatar_size=settings.max_avatar_size,
    )
    app.state.social_service = SocialService(
        gateway,
        leaderboard_limit=settings.leaderboard_limit,
        explore_limit=settings.explore_limit,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Executes in REVERSE order of addition:
    # RequestID → Logging → Timeout → GZip → CORS → route
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(TimeoutMiddleware, timeout_seconds=settings.request_timeout_seconds)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(habits.router)
    app.include_router(feed.router)
    app.include_router(health.router)

    # Avatars saved by LocalBlobStore are served under their public prefix
    app.mount(
        settings.avatar_public_url,
        StaticFiles(directory=settings.storage_root, check_dir=False),
        name="avatars",
    )

    return app


# ── Application Instance ─────────────────────────────────────────────────
# uvicorn expects `peakstreak.main:app` to be importable
app = create_app()

"""
PeakStreak Backend: Database Engine & Session Factory
======================================================

What:  Builds the async SQLAlchemy engine and session factory, and declares
       the ORM base class.
Why:   Centralizes connection logic in one place. Nothing here is a module-level
       singleton: the app factory calls `create_engine()` with its Settings and
       hands the session factory to the gateway.
How:   `create_async_engine` with connection pooling; `async_sessionmaker`
       with `expire_on_commit=False`.

Concurrency note:
    An AsyncSession must not be shared between concurrently running tasks.
    The gateway therefore opens one short-lived session per call from the
    session factory; the engine's pool hands each of them its own connection.

Connection Pooling Strategy (PostgreSQL):
    pool_size=20, max_overflow=10, pool_pre_ping, pool_recycle=3600.
    SQLite (tests) uses SQLAlchemy's default pool for the file and enables
    foreign keys on every connection so cascades behave like PostgreSQL.
"""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from peakstreak.config import Settings


class Base(DeclarativeBase):
    """Base class for all ORM models (shared metadata for Alembic)."""
    pass


def create_engine(settings: Settings) -> AsyncEngine:
    """
    Create the async engine for the configured database URL.

    Pool arguments only apply to server databases; SQLite pools reject them.
    """
    if settings.is_sqlite:
        engine = create_async_engine(
            settings.database_url,
            echo=settings.log_level == "DEBUG",
        )

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_async_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_recycle=3600,
        echo=settings.log_level == "DEBUG",
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory shared by every gateway call.

    expire_on_commit=False: rows stay readable after commit, so the gateway
    can convert them into domain entities after the transaction closes.
    """
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables directly (tests and local SQLite runs; production uses Alembic)."""
    # Models must be imported so they register on Base.metadata
    from peakstreak import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine(engine: AsyncEngine) -> None:
    """Close all pooled connections (application shutdown)."""
    await engine.dispose()

"""
Async SQLAlchemy engine, session factory, and declarative base.

Provides:
- ``Base`` -- the declarative base class for all ORM models.
- ``build_engine`` -- creates an async engine for the configured ``DATABASE_URL``.
- ``build_session_factory`` -- a session-maker producing ``AsyncSession`` objects.
- ``create_tables`` -- provisions every table registered on ``Base``.

The engine is built lazily by the application lifespan rather than at import
time, so tests can point the incident store at an in-memory database.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from threatscope.config import get_settings

# ── Constants ────────────────────────────────────────────────────────────────

_POOL_RECYCLE_SECONDS: int = 1800  # 30 minutes


# ── Declarative Base ─────────────────────────────────────────────────────────

class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models in the project."""


# ── Engine & Session Factory ─────────────────────────────────────────────────

def build_engine(url: str | None = None) -> AsyncEngine:
    """Create and return a new async engine.

    Args:
        url: Database URL.  Defaults to ``settings.DATABASE_URL``.
    """
    settings = get_settings()
    return create_async_engine(
        url or settings.DATABASE_URL,
        echo=settings.DEBUG,
        pool_recycle=_POOL_RECYCLE_SECONDS,
        pool_pre_ping=True,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Return a session-maker bound to *engine*."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables known to :class:`Base` if they do not exist yet."""
    # Import models so they register on Base.metadata.
    import threatscope.models.incident_record  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

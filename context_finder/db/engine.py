# =============================================================================
# Database Engine & Session Management
# =============================================================================
#
# DESIGN DECISION: Async SQLAlchemy Engine
# The retrieval pipeline runs on asyncio, so every relational lookup goes
# through SQLAlchemy's async engine with the asyncpg driver.
#
# SESSION LIFECYCLE:
# Every store call opens its own session from `async_session_factory`.
# The keyword and knowledge graph adapters run concurrently, and an
# AsyncSession must never be shared between concurrent tasks.
#
# The engine is created lazily so that importing the package (tests,
# Chroma-only deployments) does not require asyncpg or a reachable
# database.
# =============================================================================

from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from context_finder.config import settings

_async_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_async_engine() -> AsyncEngine:
    """
    Lazily create and cache the async engine.

    - echo (debug mode): logs all SQL statements.
    - pool_size / max_overflow: the three primary searches plus per-entity
      graph lookups rarely hold more than two connections per request.
    """
    global _async_engine
    if _async_engine is None:
        _async_engine = create_async_engine(
            settings.database_url,
            echo=settings.debug,
            pool_size=5,
            max_overflow=10,
        )
    return _async_engine


def async_session_factory() -> AsyncSession:
    """
    Create a new AsyncSession.

    expire_on_commit=False: loaded objects stay readable after commit,
    which matters because attribute refreshes cannot run outside a
    session in async context.
    """
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = async_sessionmaker(
            bind=get_async_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session_factory()


async def dispose_engine() -> None:
    """Close pooled connections. Called on application shutdown."""
    global _async_engine, _async_session_factory
    if _async_engine is not None:
        await _async_engine.dispose()
    _async_engine = None
    _async_session_factory = None

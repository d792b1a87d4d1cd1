"""
Database Module

Async SQLAlchemy engine, session factory and declarative Base.

The session factory is exposed both as a request-scoped dependency
(get_db) and as a factory dependency (get_session_factory) for
long-lived callers such as WebSocket handlers that open one short
session per event.
"""

import logging
from typing import AsyncGenerator, Callable

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from app.core.config import settings

logger = logging.getLogger(__name__)


# ============================================================
# Engine
# ============================================================

def _engine_kwargs() -> dict:
    """Pool options only apply to server databases."""
    kwargs = {"echo": settings.SQLALCHEMY_ECHO, "pool_pre_ping": True}

    if settings.DATABASE_URL.startswith("sqlite"):
        return kwargs

    if settings.DB_POOL_MIN_SIZE:
        kwargs["pool_size"] = settings.DB_POOL_MIN_SIZE
    if settings.DB_POOL_MAX_SIZE:
        kwargs["max_overflow"] = max(
            settings.DB_POOL_MAX_SIZE - (settings.DB_POOL_MIN_SIZE or 5), 0
        )
    return kwargs


engine = create_async_engine(settings.DATABASE_URL, **_engine_kwargs())

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


# ============================================================
# Dependencies
# ============================================================

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that yields a database session per request.

    The session is rolled back if the request handler raises.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> Callable[[], AsyncSession]:
    """Dependency returning the session factory (used by WebSocket handlers)."""
    return AsyncSessionLocal


# ============================================================
# Health Check
# ============================================================

async def check_db_connection() -> bool:
    """Return True if the database answers a trivial query."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False

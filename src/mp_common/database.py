"""Async engine and session factory shared by every repository.

Repositories never open their own sessions: the application service receives
one per request and owns commit/rollback. Every connection carries a
Postgres lock_timeout so a conditional UPDATE cannot wait forever on a row
held by another worker.
"""

from collections.abc import AsyncGenerator

from asyncpg.exceptions import LockNotAvailableError
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from config.settings import settings

LOCK_NOT_AVAILABLE = "55P03"

engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=20,
    max_overflow=10,
    pool_pre_ping=True,
    connect_args={"server_settings": {"lock_timeout": str(settings.DB_LOCK_TIMEOUT_MS)}},
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: yields an AsyncSession, auto-closes after request."""
    async with async_session_factory() as session:
        yield session


def is_lock_timeout(exc: DBAPIError) -> bool:
    """True when Postgres gave up waiting for a lock (SQLSTATE 55P03)."""
    orig = exc.orig
    if isinstance(getattr(orig, "__cause__", None), LockNotAvailableError):
        return True
    return getattr(orig, "sqlstate", None) == LOCK_NOT_AVAILABLE

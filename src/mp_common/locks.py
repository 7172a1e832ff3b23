"""Per-entity locks scoped to one read-validate-write transition.

Two backends:
  - LocalEntityLockManager: one asyncio.Lock per live key (single worker).
  - RedisEntityLockManager: redis Lock with a lease (multiple workers).

Both wait at most `wait_timeout` seconds; on timeout the caller gets a
retryable ConcurrentModificationError instead of a hung request. A Postgres
lock_timeout raised while the lock is held maps to the same error. Locks only
serialize writers; the conditional UPDATEs in the repositories remain the
source of truth if a lease expires mid-transition.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol

import redis.asyncio as aioredis
from redis.exceptions import LockError
from sqlalchemy.exc import DBAPIError

from config.settings import settings
from src.mp_common.database import is_lock_timeout
from src.mp_common.errors import ConcurrentModificationError
from src.mp_common.redis_client import get_redis

logger = logging.getLogger(__name__)


def listing_key(listing_id: str) -> str:
    return f"listing:{listing_id}"


def order_key(order_id: str) -> str:
    return f"order:{order_id}"


class EntityLockManager(Protocol):
    def hold(self, key: str) -> AbstractAsyncContextManager[None]: ...


@asynccontextmanager
async def _row_lock_conflicts(key: str) -> AsyncIterator[None]:
    """Surface a Postgres lock_timeout inside the held section as a retryable conflict."""
    try:
        yield
    except DBAPIError as exc:
        if not is_lock_timeout(exc):
            raise
        logger.warning("Row lock wait timed out: key=%s", key)
        raise ConcurrentModificationError(key) from exc


class LocalEntityLockManager:
    """One asyncio.Lock per key, dropped once no task holds or awaits it."""

    def __init__(self, wait_timeout: float = 3.0) -> None:
        self._wait_timeout = wait_timeout
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def _checkout(self, key: str) -> asyncio.Lock:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        return lock

    def _checkin(self, key: str) -> None:
        self._users[key] -= 1
        if self._users[key] == 0:
            del self._users[key]
            del self._locks[key]

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._checkout(key)
        try:
            try:
                async with asyncio.timeout(self._wait_timeout):
                    await lock.acquire()
            except TimeoutError:
                logger.warning("Lock wait timed out: key=%s after %.1fs", key, self._wait_timeout)
                raise ConcurrentModificationError(key) from None
            try:
                async with _row_lock_conflicts(key):
                    yield
            finally:
                lock.release()
        finally:
            self._checkin(key)


class RedisEntityLockManager:
    def __init__(
        self,
        redis_factory: Callable[[], Awaitable[aioredis.Redis]] = get_redis,
        wait_timeout: float = 3.0,
        lease_seconds: float = 15.0,
    ) -> None:
        self._redis_factory = redis_factory
        self._wait_timeout = wait_timeout
        self._lease_seconds = lease_seconds

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        client = await self._redis_factory()
        lock = client.lock(
            f"lock:{key}",
            timeout=self._lease_seconds,
            blocking_timeout=self._wait_timeout,
        )
        acquired = await lock.acquire()
        if not acquired:
            logger.warning("Redis lock wait timed out: key=%s", key)
            raise ConcurrentModificationError(key)
        try:
            async with _row_lock_conflicts(key):
                yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Lease expired while held; the version check on write decides.
                logger.warning("Redis lock lease expired before release: key=%s", key)


def build_lock_manager() -> EntityLockManager:
    """Pick the backend configured by LOCK_BACKEND."""
    if settings.LOCK_BACKEND == "redis":
        return RedisEntityLockManager(
            wait_timeout=settings.LOCK_WAIT_TIMEOUT_SECONDS,
            lease_seconds=settings.LOCK_LEASE_SECONDS,
        )
    return LocalEntityLockManager(wait_timeout=settings.LOCK_WAIT_TIMEOUT_SECONDS)


_manager: EntityLockManager | None = None


def get_lock_manager() -> EntityLockManager:
    """Process-wide manager; every service must share it for local locks to exclude."""
    global _manager  # noqa: PLW0603
    if _manager is None:
        _manager = build_lock_manager()
    return _manager

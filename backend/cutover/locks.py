"""
Per-cutover mutual exclusion.

Every lifecycle operation on a cutover runs under that cutover's lock, so a
manual stop can never interleave with a scheduled evaluation of the same
cutover. Different cutovers never contend.

  - LocalLockRegistry: asyncio locks, one process (tests, single-node dev)
  - RedisLockRegistry: Redis locks shared by the API and the Celery workers
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager, asynccontextmanager

import redis.asyncio as aioredis
import structlog
from redis.exceptions import LockError

logger = structlog.get_logger()

# Reserved name held for the duration of a reconciliation tick.
TICK_LOCK_NAME = "__tick__"


class LockUnavailable(Exception):
    def __init__(self, name: str):
        super().__init__(f"Lock '{name}' is held elsewhere")
        self.name = name


class LockRegistry(ABC):
    @abstractmethod
    def hold(self, name: str, *, blocking: bool = True) -> AbstractAsyncContextManager[None]:
        """Async context manager holding ``name``. Raises LockUnavailable if it cannot be taken."""
        ...

    async def aclose(self) -> None:
        return None


class LocalLockRegistry(LockRegistry):
    """Entries live only while a holder or waiter references them."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def is_held(self, name: str) -> bool:
        lock = self._locks.get(name)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, name: str, *, blocking: bool = True):
        lock = self._locks.setdefault(name, asyncio.Lock())
        if not blocking and lock.locked():
            raise LockUnavailable(name)
        self._users[name] = self._users.get(name, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[name] -= 1
            if not self._users[name]:
                del self._users[name]
                del self._locks[name]


class RedisLockRegistry(LockRegistry):
    def __init__(
        self,
        redis_url: str,
        *,
        timeout: int = 600,
        blocking_timeout: float = 60.0,
        prefix: str = "cutover-monitor:lock:",
    ):
        self._redis = aioredis.from_url(redis_url)
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout
        self.prefix = prefix

    @asynccontextmanager
    async def hold(self, name: str, *, blocking: bool = True):
        lock = self._redis.lock(f"{self.prefix}{name}", timeout=self.timeout)
        acquired = await lock.acquire(
            blocking=blocking,
            blocking_timeout=self.blocking_timeout if blocking else None,
        )
        if not acquired:
            raise LockUnavailable(name)
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Expired while held; another holder may already be running.
                logger.warning("lock.release_failed", lock=name, timeout=self.timeout)

    async def aclose(self) -> None:
        await self._redis.aclose()


def build_lock_registry(settings) -> LockRegistry:
    if settings.lock_backend == "local":
        return LocalLockRegistry()
    return RedisLockRegistry(settings.redis_url, timeout=settings.lock_timeout_seconds)

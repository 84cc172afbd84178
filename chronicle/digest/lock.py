"""Tick locks: at most one tick per scope at a time.

Overlapping ticks over the same queue would digest the same events twice.
Each digest branch owns one queue and one scope, so holding the scope lock
makes the tick the single writer for every grouping key in it.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager

from redis.asyncio import Redis
from redis.exceptions import LockError

from chronicle.observability.logging import get_logger

logger = get_logger(__name__)


class TickLock(ABC):
    """Non-reentrant, per-scope mutual exclusion for digest ticks."""

    @abstractmethod
    def hold(self, scope: str) -> AbstractAsyncContextManager[bool]:
        """Try to hold the lock for a scope.

        Yields:
            True if this caller holds the lock, False if another tick does
        """
        ...


class InMemoryTickLock(TickLock):
    """Process-local lock. Does not wait: a busy scope yields False."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    @asynccontextmanager
    async def hold(self, scope: str) -> AsyncIterator[bool]:
        lock = self._locks.setdefault(scope, asyncio.Lock())
        if lock.locked():
            yield False
            return
        async with lock:
            yield True

    def is_held(self, scope: str) -> bool:
        lock = self._locks.get(scope)
        return lock is not None and lock.locked()


class RedisTickLock(TickLock):
    """Redis-backed lock for ticks running in several processes.

    Lock key format: ticklock:{scope}
    """

    def __init__(
        self,
        redis: Redis,
        lock_timeout: float = 300.0,
        blocking_timeout: float = 0.1,
    ) -> None:
        """Initialize tick lock.

        Args:
            redis: Redis client instance
            lock_timeout: Auto-release after this many seconds if the holder dies
            blocking_timeout: How long to wait for a busy lock (seconds)
        """
        self._redis = redis
        self._lock_timeout = lock_timeout
        self._blocking_timeout = blocking_timeout

    def _key(self, scope: str) -> str:
        return f"ticklock:{scope}"

    @asynccontextmanager
    async def hold(self, scope: str) -> AsyncIterator[bool]:
        lock = self._redis.lock(
            self._key(scope),
            timeout=self._lock_timeout,
            blocking_timeout=self._blocking_timeout,
        )
        acquired = await lock.acquire()
        try:
            yield bool(acquired)
        finally:
            if acquired:
                try:
                    await lock.release()
                except LockError:
                    # Expired while the tick ran; another holder may exist now
                    logger.warning("tick_lock_expired", scope=scope)

    async def is_held(self, scope: str) -> bool:
        return await self._redis.exists(self._key(scope)) > 0

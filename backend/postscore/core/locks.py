"""Per-user locks that serialize scoring runs for the same user.

Two backends share the same ``hold(user_id)`` interface:

- ``LocalUserLocks``: one ``asyncio.Lock`` per user, valid inside a single process.
- ``RedisUserLocks``: a Redis lock per user, valid across workers and hosts.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from redis.exceptions import LockNotOwnedError

from postscore.config import settings
from postscore.core.errors import ScoringBusyError

logger = logging.getLogger(__name__)


class LocalUserLocks:
    def __init__(self, blocking_timeout: float | None = None):
        self.blocking_timeout = blocking_timeout
        self._locks: dict[int, asyncio.Lock] = {}
        self._holders: dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, user_id: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._holders[user_id] = self._holders.get(user_id, 0) + 1
        try:
            try:
                # acquire() runs in this task, so a timeout can't leave the lock held
                async with asyncio.timeout(self.blocking_timeout):
                    await lock.acquire()
            except TimeoutError:
                raise ScoringBusyError(user_id) from None
            try:
                yield
            finally:
                lock.release()
        finally:
            # Drop the lock once nobody holds or waits on it
            self._holders[user_id] -= 1
            if not self._holders[user_id]:
                del self._holders[user_id]
                del self._locks[user_id]


class RedisUserLocks:
    def __init__(
        self,
        redis: aioredis.Redis,
        timeout: float | None = None,
        blocking_timeout: float | None = None,
    ):
        self.redis = redis
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout

    def _lock_key(self, user_id: int) -> str:
        return f"scoring:lock:{user_id}"

    @asynccontextmanager
    async def hold(self, user_id: int) -> AsyncIterator[None]:
        lock = self.redis.lock(
            self._lock_key(user_id),
            timeout=self.timeout,
            blocking_timeout=self.blocking_timeout,
        )
        if not await lock.acquire():
            raise ScoringBusyError(user_id)
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockNotOwnedError:
                # The run outlived SCORING_LOCK_TIMEOUT; the unique constraints still hold
                logger.warning("Scoring lock for user %s expired before release", user_id)


def build_user_locks() -> LocalUserLocks | RedisUserLocks:
    """Create the lock backend selected by SCORING_LOCK_BACKEND."""
    backend = settings.SCORING_LOCK_BACKEND
    if backend == "local":
        return LocalUserLocks(blocking_timeout=settings.SCORING_LOCK_BLOCKING_TIMEOUT)
    if backend == "redis":
        from postscore.db.redis import get_redis_client

        return RedisUserLocks(
            get_redis_client(),
            timeout=settings.SCORING_LOCK_TIMEOUT,
            blocking_timeout=settings.SCORING_LOCK_BLOCKING_TIMEOUT,
        )
    raise ValueError(f"Unknown SCORING_LOCK_BACKEND: {backend!r}")

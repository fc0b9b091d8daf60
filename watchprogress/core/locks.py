"""Per-key locks serializing read-check-merge-write on one progress record.

Two implementations share the ``hold(video_id, user_id)`` interface:

- ``KeyedLock``: one ``asyncio.Lock`` per key, for a single worker process
- ``RedisKeyedLock``: redis locks, for several workers sharing a store

Different keys never wait on each other.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import TYPE_CHECKING, Protocol

import structlog
from redis.exceptions import LockError, RedisError

from watchprogress.core.redis import progress_lock_name


if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = structlog.get_logger(__name__)


class LockAcquireError(Exception):
    """Raised when a key lock cannot be obtained."""


class ProgressLock(Protocol):
    """Anything that can serialize work on a (video, user) key."""

    def hold(
        self, video_id: str, user_id: str
    ) -> AbstractAsyncContextManager[None]:
        """Async context manager held for the duration of one merge."""
        ...


class KeyedLock:
    """In-process lock table keyed by (video_id, user_id).

    Locks are created on first use and dropped once nobody holds or waits on
    them, so the table only grows with concurrently active keys.
    """

    def __init__(self) -> None:
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._users: dict[tuple[str, str], int] = {}

    @asynccontextmanager
    async def hold(self, video_id: str, user_id: str) -> AsyncIterator[None]:
        key = (video_id, user_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1

        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class RedisKeyedLock:
    """Distributed lock table backed by ``redis.asyncio`` locks."""

    def __init__(
        self,
        redis: "Redis",
        timeout: float = 10.0,
        blocking_timeout: float = 5.0,
    ) -> None:
        """Initialize with a redis client.

        Args:
            redis: Async redis client
            timeout: Seconds after which a held lock expires on its own
            blocking_timeout: Seconds to wait before giving up on acquiring
        """
        self.redis = redis
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout

    @asynccontextmanager
    async def hold(self, video_id: str, user_id: str) -> AsyncIterator[None]:
        name = progress_lock_name(video_id, user_id)
        lock = self.redis.lock(
            name,
            timeout=self.timeout,
            blocking_timeout=self.blocking_timeout,
        )

        try:
            acquired = await lock.acquire()
        except RedisError as e:
            raise LockAcquireError(f"Redis unavailable for lock {name}: {e}") from e
        if not acquired:
            raise LockAcquireError(f"Timed out waiting for lock {name}")

        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Held longer than `timeout`; the lock already expired
                logger.warning("progress_lock_expired", lock=name)
            except RedisError as e:
                # Expires on its own after `timeout`
                logger.warning(
                    "progress_lock_release_failed", lock=name, error=str(e)
                )

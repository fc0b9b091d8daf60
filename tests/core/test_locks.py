"""Tests for per-key progress locks."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import LockError

from watchprogress.core.locks import KeyedLock, LockAcquireError, RedisKeyedLock
from watchprogress.core.redis import progress_lock_name
from watchprogress.progress.service import ProgressService
from watchprogress.progress.storage import InMemoryProgressStore


class TestKeyedLock:
    """Tests for the in-process lock table."""

    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self):
        locks = KeyedLock()
        order: list[str] = []

        async def work(name: str):
            async with locks.hold("v1", "u1"):
                order.append(f"{name}:start")
                await asyncio.sleep(0.01)
                order.append(f"{name}:end")

        await asyncio.gather(work("a"), work("b"))

        assert order == ["a:start", "a:end", "b:start", "b:end"]

    @pytest.mark.asyncio
    async def test_different_keys_do_not_block(self):
        locks = KeyedLock()
        entered = asyncio.Event()

        async def holder():
            async with locks.hold("v1", "u1"):
                await asyncio.wait_for(entered.wait(), timeout=1.0)

        async def other():
            async with locks.hold("v2", "u1"):
                entered.set()

        await asyncio.gather(holder(), other())

    @pytest.mark.asyncio
    async def test_table_is_emptied_after_use(self):
        locks = KeyedLock()

        async with locks.hold("v1", "u1"):
            assert len(locks) == 1

        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_released_on_error(self):
        locks = KeyedLock()

        with pytest.raises(ValueError):
            async with locks.hold("v1", "u1"):
                raise ValueError("boom")

        assert len(locks) == 0
        async with locks.hold("v1", "u1"):
            pass


@pytest.fixture
def mock_lock():
    lock = Mock()
    lock.acquire = AsyncMock(return_value=True)
    lock.release = AsyncMock()
    return lock


@pytest.fixture
def mock_redis(mock_lock):
    """Mock Redis client."""
    redis_mock = Mock()
    redis_mock.lock = Mock(return_value=mock_lock)
    return redis_mock


class TestRedisKeyedLock:
    """Tests for the redis-backed lock table."""

    @pytest.mark.asyncio
    async def test_acquire_and_release(self, mock_redis, mock_lock):
        locks = RedisKeyedLock(mock_redis, timeout=3.0, blocking_timeout=1.0)

        async with locks.hold("v1", "u1"):
            mock_lock.release.assert_not_awaited()

        mock_redis.lock.assert_called_once_with(
            progress_lock_name("v1", "u1"), timeout=3.0, blocking_timeout=1.0
        )
        mock_lock.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_timeout_raises(self, mock_redis, mock_lock):
        mock_lock.acquire.return_value = False
        locks = RedisKeyedLock(mock_redis)

        with pytest.raises(LockAcquireError):
            async with locks.hold("v1", "u1"):
                pytest.fail("body must not run")

        mock_lock.release.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_redis_down_raises(self, mock_redis, mock_lock):
        mock_lock.acquire.side_effect = RedisConnectionError("refused")
        locks = RedisKeyedLock(mock_redis)

        with pytest.raises(LockAcquireError):
            async with locks.hold("v1", "u1"):
                pass

    @pytest.mark.asyncio
    async def test_expired_lock_is_not_an_error(self, mock_redis, mock_lock):
        mock_lock.release.side_effect = LockError("not owned")
        locks = RedisKeyedLock(mock_redis)

        async with locks.hold("v1", "u1"):
            pass

    @pytest.mark.asyncio
    async def test_release_failure_is_not_an_error(self, mock_redis, mock_lock):
        mock_lock.release.side_effect = RedisConnectionError("connection lost")
        locks = RedisKeyedLock(mock_redis)
        ran = False

        async with locks.hold("v1", "u1"):
            ran = True

        assert ran
        mock_lock.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_save_survives_release_failure(self, mock_redis, mock_lock):
        mock_lock.release.side_effect = RedisConnectionError("connection lost")
        store = InMemoryProgressStore()
        service = ProgressService(store=store, locks=RedisKeyedLock(mock_redis))

        saved = await service.save_progress("v1", "u1", [True])

        assert saved.record.checkpoints == [True]
        assert (await store.get("v1", "u1")).checkpoints == [True]


def test_lock_name():
    assert progress_lock_name("v1", "u1") == "progress:lock:v1:u1"

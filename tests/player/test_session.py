"""Tests for the playback session worker."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from watchprogress.player.client import ProgressClient, ProgressClientError
from watchprogress.player.session import DurationKnown, PlaybackSession, TimeUpdate
from watchprogress.progress.schemas import ProgressResponse


@pytest.fixture
def mock_client():
    """Mock progress API client."""
    client = Mock(spec=ProgressClient)
    client.read_progress = AsyncMock(return_value=ProgressResponse())
    client.save_progress = AsyncMock()
    return client


def make_session(client, **kwargs) -> PlaybackSession:
    clock = Mock(return_value=1_000_000.0)
    return PlaybackSession("video-1", client, clock=clock, **kwargs)


async def drain() -> None:
    for _ in range(3):
        await asyncio.sleep(0)


class TestLifecycle:
    """Tests for start/stop."""

    @pytest.mark.asyncio
    async def test_start_restores_stored_progress(self, mock_client):
        mock_client.read_progress.return_value = ProgressResponse(
            checkpoints=[True, False, True]
        )
        session = make_session(mock_client)

        await session.start()
        session.publish_duration(30)
        await session.stop()

        mock_client.read_progress.assert_awaited_once_with("video-1")
        assert session.tracker.checkpoints == [True, False, True]

    @pytest.mark.asyncio
    async def test_restore_failure_is_not_fatal(self, mock_client):
        mock_client.read_progress.side_effect = ProgressClientError("down")
        session = make_session(mock_client)

        await session.start()

        assert session.is_running
        await session.stop()

    @pytest.mark.asyncio
    async def test_context_manager(self, mock_client):
        async with make_session(mock_client) as session:
            assert session.is_running

        assert not session.is_running

    @pytest.mark.asyncio
    async def test_stop_without_start(self, mock_client):
        await make_session(mock_client).stop()


class TestEvents:
    """Tests for event processing."""

    @pytest.mark.asyncio
    async def test_watching_saves_checkpoints(self, mock_client):
        on_complete = Mock()
        session = make_session(mock_client, on_complete=on_complete)

        async with session:
            assert session.publish(DurationKnown(20))
            for t in range(0, 21):
                assert session.publish(TimeUpdate(float(t), 1.0))

        await drain()

        assert session.tracker.checkpoints == [True, True]
        on_complete.assert_called_once()
        mock_client.save_progress.assert_any_await("video-1", [True, False])
        mock_client.save_progress.assert_awaited_with("video-1", [True, True])

    @pytest.mark.asyncio
    async def test_events_applied_in_order(self, mock_client):
        session = make_session(mock_client)

        async with session:
            session.publish_time_update(5.0)
            session.publish_duration(30)
            session.publish_time_update(6.0)

        assert session.tracker.previous_time == 6.0
        assert session.tracker.accumulated == [1.0, 0.0, 0.0]

    @pytest.mark.asyncio
    async def test_full_queue_drops_events(self, mock_client):
        session = make_session(mock_client, queue_size=1)
        await session.start()

        # The worker has not run yet, so the second event finds the queue full
        assert session.publish_duration(30) is True
        assert session.publish_time_update(1.0) is False
        assert session.events_dropped == 1

        await session.stop()

    @pytest.mark.asyncio
    async def test_publish_after_stop_ignored(self, mock_client):
        session = make_session(mock_client)
        await session.start()
        await session.stop()

        assert session.publish_duration(30) is False

    @pytest.mark.asyncio
    async def test_save_failure_keeps_session_alive(self, mock_client):
        mock_client.save_progress.side_effect = ProgressClientError("boom", 503)
        session = make_session(mock_client)

        async with session:
            session.publish_duration(10)
            session.publish_time_update(0.0)
            session.publish_time_update(10.0)
            await drain()
            assert session.is_running

        assert session.tracker.checkpoints == [True]
        assert session.tracker.is_dirty


def test_for_video_uses_configured_tracker_options(mock_client):
    from watchprogress.config import Settings

    settings = Settings(_env_file=None, checkpoint_interval=5, save_debounce_ms=100)

    session = PlaybackSession.for_video("video-2", mock_client, settings=settings)

    assert session.video_id == "video-2"
    assert session.tracker.checkpoint_interval == 5
    assert session.tracker.save_debounce_ms == 100

"""Playback session: feeds media events to a tracker from a background worker.

Key features:
- Non-blocking event publication via asyncio.Queue.put_nowait()
- Drop + log when the queue is full
- Stored progress restored before tracking starts
- Unsaved completions flushed on stop
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

from watchprogress.config import Settings, get_settings

from .client import ProgressClient, ProgressClientError
from .tracker import PlaybackTracker


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DurationKnown:
    """Media metadata loaded."""

    duration: float


@dataclass(frozen=True)
class TimeUpdate:
    """Periodic playback position report."""

    current_time: float
    playback_rate: float | None = 1.0


PlaybackEvent = DurationKnown | TimeUpdate

_STOP = object()


class PlaybackSession:
    """One viewer watching one video.

    Events are published fire-and-forget; a single worker applies them to
    the tracker in order, so the tracker is never touched concurrently.
    """

    def __init__(
        self,
        video_id: str,
        client: ProgressClient,
        on_complete: Callable[[], None] | None = None,
        queue_size: int = 256,
        **tracker_kwargs: Any,
    ) -> None:
        """Initialize the session.

        Args:
            video_id: Video being watched
            client: Progress API client
            on_complete: Called once when the completion threshold is crossed
            queue_size: Maximum pending events (events dropped when full)
            **tracker_kwargs: Passed through to PlaybackTracker
        """
        self.video_id = video_id
        self.client = client
        self.queue_size = queue_size
        self.tracker = PlaybackTracker(
            self._save, on_complete=on_complete, **tracker_kwargs
        )

        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=queue_size)
        self._running = False
        self._worker_task: asyncio.Task | None = None

        self._events_published = 0
        self._events_dropped = 0
        self._events_processed = 0

    @classmethod
    def for_video(
        cls,
        video_id: str,
        client: ProgressClient,
        on_complete: Callable[[], None] | None = None,
        settings: Settings | None = None,
    ) -> PlaybackSession:
        """Create a session using the configured tracker options."""
        settings = settings or get_settings()
        return cls(
            video_id, client, on_complete=on_complete, **settings.tracker_options
        )

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def events_dropped(self) -> int:
        return self._events_dropped

    async def __aenter__(self) -> PlaybackSession:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def _save(self, checkpoints: list[bool]) -> None:
        await self.client.save_progress(self.video_id, checkpoints)

    # ==========================================================================
    # Fire-and-forget publication
    # ==========================================================================

    def publish(self, event: PlaybackEvent) -> bool:
        """Queue a playback event.

        Returns:
            True if queued, False if dropped
        """
        if not self._running:
            logger.debug("playback_event_ignored", video_id=self.video_id)
            return False
        try:
            self._queue.put_nowait(event)
            self._events_published += 1
            return True
        except asyncio.QueueFull:
            self._events_dropped += 1
            logger.warning(
                "playback_queue_full",
                video_id=self.video_id,
                queue_size=self.queue_size,
                dropped_total=self._events_dropped,
            )
            return False

    def publish_duration(self, duration: float) -> bool:
        return self.publish(DurationKnown(duration))

    def publish_time_update(
        self, current_time: float, playback_rate: float | None = 1.0
    ) -> bool:
        return self.publish(TimeUpdate(current_time, playback_rate))

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    async def start(self) -> None:
        """Restore stored progress and start the worker."""
        if self._running:
            logger.warning("playback_session_already_running", video_id=self.video_id)
            return

        try:
            stored = await self.client.read_progress(self.video_id)
            self.tracker.restore(stored.checkpoints)
            logger.info(
                "playback_progress_restored",
                video_id=self.video_id,
                checkpoints=len(stored.checkpoints),
                completed=sum(stored.checkpoints),
            )
        except ProgressClientError as e:
            # Start from an empty vector; the server merge keeps what it has
            logger.warning(
                "playback_restore_failed",
                video_id=self.video_id,
                error=e.message,
            )

        self._running = True
        self._worker_task = asyncio.create_task(
            self._worker_loop(),
            name=f"playback_worker:{self.video_id}",
        )
        logger.info("playback_session_started", video_id=self.video_id)

    async def stop(self) -> None:
        """Drain queued events, then save unsaved completions."""
        if not self._running:
            return

        self._running = False
        await self._queue.put(_STOP)
        if self._worker_task:
            await self._worker_task
            self._worker_task = None

        await self.tracker.flush()

        logger.info(
            "playback_session_stopped",
            video_id=self.video_id,
            events_published=self._events_published,
            events_processed=self._events_processed,
            events_dropped=self._events_dropped,
            completed=sum(self.tracker.checkpoints),
            total=len(self.tracker.checkpoints),
        )

    async def _worker_loop(self) -> None:
        while True:
            event = await self._queue.get()
            if event is _STOP:
                return
            try:
                self._apply(event)
                self._events_processed += 1
            except Exception:
                logger.exception("playback_worker_error", video_id=self.video_id)

    def _apply(self, event: PlaybackEvent) -> None:
        if isinstance(event, DurationKnown):
            self.tracker.set_duration(event.duration)
        elif isinstance(event, TimeUpdate):
            self.tracker.handle_sample(event.current_time, event.playback_rate)

"""Playback tracker: turns playback-time samples into checkpoint completions.

One tracker per playback session. It accumulates watched time per segment
from ``(current_time, playback_rate)`` samples, flips segments to complete
once they reach a full interval of watched time, fires the completion
callback when the session crosses the completion threshold, and saves the
checkpoint vector fire-and-forget, at most once per debounce window.
"""

from __future__ import annotations

import asyncio
import math
import time
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from watchprogress.progress.merge import merge_checkpoints
from watchprogress.progress.models import (
    CHECKPOINT_INTERVAL,
    COMPLETION_THRESHOLD,
    SAVE_DEBOUNCE_MS,
)


logger = structlog.get_logger(__name__)


SaveCallback = Callable[[list[bool]], Awaitable[Any]]


def checkpoint_count(duration: float, interval: float = CHECKPOINT_INTERVAL) -> int:
    """Number of segments covering ``duration`` seconds."""
    return math.ceil(duration / interval)


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class PlaybackTracker:
    """Checkpoint state machine for one playback session.

    Not thread-safe and not reentrant: feed it from a single task.
    """

    def __init__(
        self,
        save: SaveCallback,
        on_complete: Callable[[], None] | None = None,
        *,
        checkpoint_interval: float = CHECKPOINT_INTERVAL,
        completion_threshold: float = COMPLETION_THRESHOLD,
        save_debounce_ms: float = SAVE_DEBOUNCE_MS,
        clock: Callable[[], float] = _monotonic_ms,
    ) -> None:
        """Initialize the tracker.

        Args:
            save: Coroutine function persisting a checkpoint vector
            on_complete: Called once when the completion threshold is crossed
            checkpoint_interval: Segment length in seconds
            completion_threshold: Ratio of completed segments that completes
                the video
            save_debounce_ms: Minimum milliseconds between two saves
            clock: Millisecond clock used for debouncing
        """
        self._save = save
        self._on_complete = on_complete
        self.checkpoint_interval = checkpoint_interval
        self.completion_threshold = completion_threshold
        self.save_debounce_ms = save_debounce_ms
        self._clock = clock

        self._checkpoints: list[bool] | None = None
        self._accumulated: list[float] = []
        self._restored: list[bool] = []
        self.previous_time = 0.0
        self.last_save_at = -math.inf
        self._completion_fired = False
        self._dirty = False
        self._pending_saves: set[asyncio.Task] = set()

    # ==========================================================================
    # State
    # ==========================================================================

    @property
    def is_ready(self) -> bool:
        """Check if the duration is known and samples are being tracked."""
        return self._checkpoints is not None

    @property
    def checkpoints(self) -> list[bool]:
        """Copy of the checkpoint vector (empty until the duration is known)."""
        return list(self._checkpoints or [])

    @property
    def accumulated(self) -> list[float]:
        """Copy of the watched seconds credited to each segment."""
        return list(self._accumulated)

    @property
    def completion_ratio(self) -> float:
        if not self._checkpoints:
            return 0.0
        return sum(self._checkpoints) / len(self._checkpoints)

    @property
    def is_dirty(self) -> bool:
        """Check if some completion has not been handed to a save yet."""
        return self._dirty

    @property
    def pending_saves(self) -> int:
        return len(self._pending_saves)

    # ==========================================================================
    # Inputs
    # ==========================================================================

    def set_duration(self, duration: float) -> None:
        """Size the checkpoint vector once the media reports its duration."""
        if self._checkpoints is not None:
            return
        if not math.isfinite(duration) or duration <= 0:
            logger.debug("playback_duration_ignored", duration=duration)
            return

        count = checkpoint_count(duration, self.checkpoint_interval)
        self._checkpoints = [False] * count
        self._accumulated = [0.0] * count
        if self._restored:
            self.restore(self._restored)
            self._restored = []

        logger.debug("playback_duration_known", duration=duration, checkpoints=count)

    def restore(self, checkpoints: list[bool]) -> None:
        """Seed completions from stored progress so later saves never regress it.

        Before the duration is known the vector is kept and applied later.
        Stored entries past the local vector extend it.
        """
        if self._checkpoints is None:
            self._restored = merge_checkpoints(self._restored, checkpoints)
            return

        if len(checkpoints) > len(self._checkpoints):
            extra = len(checkpoints) - len(self._checkpoints)
            self._checkpoints.extend([False] * extra)
            self._accumulated.extend([0.0] * extra)

        for index, done in enumerate(checkpoints):
            if done:
                self._checkpoints[index] = True

        # Stored progress already past the threshold is not a crossing
        if self.completion_ratio >= self.completion_threshold:
            self._completion_fired = True

    def handle_sample(
        self,
        current_time: float,
        playback_rate: float | None = 1.0,
    ) -> list[int]:
        """Apply one time-update sample.

        Args:
            current_time: Media position in seconds
            playback_rate: Playback speed; falsy values count as 1

        Returns:
            Indices of segments that became complete with this sample
        """
        rate = playback_rate or 1.0
        start, self.previous_time = self.previous_time, current_time

        if self._checkpoints is None:
            return []

        span = current_time - start
        # Backward steps earn nothing and take nothing away
        if span <= 0:
            return []

        newly_completed = self._credit(start, current_time, max(rate, 0.0))
        if newly_completed:
            self._dirty = True
            self._check_completion()
            self._maybe_save()
        return newly_completed

    # ==========================================================================
    # Transitions
    # ==========================================================================

    def _credit(self, start: float, end: float, rate: float) -> list[int]:
        """Credit ``[start, end)`` to every segment it overlaps."""
        assert self._checkpoints is not None
        interval = self.checkpoint_interval
        completed: list[int] = []

        index = int(start // interval)
        while index < len(self._checkpoints) and index * interval < end:
            overlap = min(end, (index + 1) * interval) - max(start, index * interval)
            if index >= 0 and overlap > 0:
                self._accumulated[index] += overlap * rate
                if (
                    not self._checkpoints[index]
                    and self._accumulated[index] >= interval
                ):
                    self._checkpoints[index] = True
                    completed.append(index)
            index += 1

        return completed

    def _check_completion(self) -> None:
        if self._completion_fired:
            return
        if self.completion_ratio < self.completion_threshold:
            return

        self._completion_fired = True
        logger.info(
            "playback_completion_reached",
            completed=sum(self.checkpoints),
            total=len(self.checkpoints),
        )
        if self._on_complete is not None:
            self._on_complete()

    def _maybe_save(self) -> None:
        now = self._clock()
        if now - self.last_save_at <= self.save_debounce_ms:
            return
        self.last_save_at = now
        self._dispatch_save()

    def _dispatch_save(self) -> None:
        snapshot = self.checkpoints
        self._dirty = False
        task = asyncio.get_running_loop().create_task(self._send(snapshot))
        self._pending_saves.add(task)
        task.add_done_callback(self._pending_saves.discard)

    async def _send(self, snapshot: list[bool]) -> bool:
        try:
            await self._save(snapshot)
        except Exception as e:
            # Local state stays; the next save carries a superset of this one
            self._dirty = True
            logger.warning(
                "progress_save_failed",
                error=str(e),
                error_type=type(e).__name__,
                checkpoints=len(snapshot),
            )
            return False
        return True

    async def flush(self) -> bool:
        """Save unsaved completions now (session end). Best effort.

        In-flight saves are left running, not cancelled.

        Returns:
            False if a save was attempted and failed
        """
        if not self._dirty or not self._checkpoints:
            return True
        self._dirty = False
        self.last_save_at = self._clock()
        return await self._send(self.checkpoints)

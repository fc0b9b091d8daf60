"""Playback-side progress tracking.

Provides:
- Checkpoint tracker fed by playback-time samples
- Playback session with a background event worker
- HTTP client for the progress API
"""

from .client import ProgressClient, ProgressClientError
from .session import DurationKnown, PlaybackSession, TimeUpdate
from .tracker import PlaybackTracker, checkpoint_count


__all__ = [
    "DurationKnown",
    "PlaybackSession",
    "PlaybackTracker",
    "ProgressClient",
    "ProgressClientError",
    "TimeUpdate",
    "checkpoint_count",
]

"""Video progress tracking module.

Provides:
- Snapshot validation and monotonic merge
- Progress service with per-key serialized saves
- Cassandra and in-memory stores
"""

from .models import (
    CHECKPOINT_INTERVAL,
    COMPLETION_THRESHOLD,
    PROGRESS_TABLES_CQL,
    SAVE_DEBOUNCE_MS,
    ProgressRecord,
    ProgressStats,
    SavedProgress,
)


__all__ = [
    "CHECKPOINT_INTERVAL",
    "COMPLETION_THRESHOLD",
    "PROGRESS_TABLES_CQL",
    "SAVE_DEBOUNCE_MS",
    "ProgressRecord",
    "ProgressStats",
    "SavedProgress",
]

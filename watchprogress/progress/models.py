"""Database models for checkpoint-based video progress.

Cassandra table definitions for:
- Video progress: checkpoint vector and quiz answers per (video, user)
- Lookup table: the same records partitioned by user for dashboard queries

Architecture: Dual-write pattern so both point lookups by (video, user) and
"all videos of a user" are single-partition reads.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any


# Segment length in seconds
CHECKPOINT_INTERVAL = 10
# A video counts as completed once 80% of its checkpoints are done
COMPLETION_THRESHOLD = 0.8
# Minimum gap between two client saves, in milliseconds
SAVE_DEBOUNCE_MS = 5000


# ==============================================================================
# Helper Functions
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Progresso por (video, usuario); composite partition key = one row per pair
VIDEO_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.video_progress (
    video_id TEXT,
    user_id TEXT,
    checkpoints LIST<BOOLEAN>,
    quizzes MAP<TEXT, BOOLEAN>,
    updated_at TIMESTAMP,
    PRIMARY KEY ((video_id, user_id))
)
"""

# Lookup: progresso por usuario, para "todos os videos deste usuario"
VIDEO_PROGRESS_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.video_progress_by_user (
    user_id TEXT,
    video_id TEXT,
    checkpoints LIST<BOOLEAN>,
    quizzes MAP<TEXT, BOOLEAN>,
    updated_at TIMESTAMP,
    PRIMARY KEY (user_id, video_id)
)
"""

# All CQL statements for table setup
PROGRESS_TABLES_CQL = [
    VIDEO_PROGRESS_TABLE_CQL,
    VIDEO_PROGRESS_BY_USER_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class ProgressRecord:
    """Stored progress of one user through one video.

    Attributes:
        video_id: Video identifier
        user_id: User identifier
        checkpoints: One flag per segment, True once watched long enough
        quizzes: Quiz item key ("0", "1", ...) -> answered correctly
        updated_at: Last merge timestamp (None for a never-saved pair)
    """

    def __init__(
        self,
        video_id: str,
        user_id: str,
        checkpoints: list[bool] | None = None,
        quizzes: dict[str, bool] | None = None,
        updated_at: datetime | None = None,
    ):
        self.video_id = video_id
        self.user_id = user_id
        self.checkpoints = list(checkpoints or [])
        self.quizzes = dict(quizzes or {})
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def empty(cls, video_id: str, user_id: str) -> "ProgressRecord":
        """Record returned for a fresh session (nothing stored yet)."""
        return cls(video_id=video_id, user_id=user_id)

    @property
    def is_empty(self) -> bool:
        """Check if this record was never persisted."""
        return self.updated_at is None

    @classmethod
    def from_row(cls, row: Any) -> "ProgressRecord":
        """Create ProgressRecord from a Cassandra row.

        Cassandra stores empty collections as null.
        """
        return cls(
            video_id=row.video_id,
            user_id=row.user_id,
            checkpoints=list(row.checkpoints or []),
            quizzes=dict(row.quizzes or {}),
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "video_id": self.video_id,
            "user_id": self.user_id,
            "checkpoints": list(self.checkpoints),
            "quizzes": dict(self.quizzes),
            "updated_at": self.updated_at,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProgressRecord):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        done = sum(self.checkpoints)
        return (
            f"<ProgressRecord video={self.video_id} user={self.user_id} "
            f"{done}/{len(self.checkpoints)}>"
        )


@dataclass(frozen=True)
class ProgressStats:
    """Completion statistics derived from a checkpoint vector."""

    total_checkpoints: int
    completed_checkpoints: int
    completion_rate: int  # 0-100, rounded half up
    is_completed: bool

    @classmethod
    def from_checkpoints(
        cls,
        checkpoints: list[bool],
        threshold: float = COMPLETION_THRESHOLD,
    ) -> "ProgressStats":
        """Compute stats; an empty vector is 0% and not completed.

        ``is_completed`` compares the exact ratio, not the rounded percent, so
        79.9% is never reported as complete.
        """
        total = len(checkpoints)
        completed = sum(1 for done in checkpoints if done)
        if total == 0:
            return cls(0, 0, 0, False)

        ratio = Decimal(completed) / Decimal(total)
        rate = int((ratio * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))
        return cls(
            total_checkpoints=total,
            completed_checkpoints=completed,
            completion_rate=rate,
            is_completed=ratio >= Decimal(str(threshold)),
        )


@dataclass(frozen=True)
class SavedProgress:
    """A persisted record together with its derived statistics."""

    record: ProgressRecord
    stats: ProgressStats

"""Pydantic schemas for video progress.

Request and response models for:
- Reading and saving progress snapshots
- Per-user progress listing
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .models import ProgressRecord, ProgressStats, SavedProgress


FRESH_SESSION_MESSAGE = "No progress found - starting fresh"


# ==============================================================================
# Request Schemas
# ==============================================================================


class SaveProgressRequest(BaseModel):
    """Client snapshot.

    Fields are deliberately untyped: the service validator decides what is
    acceptable and reports a specific reason code.
    """

    model_config = ConfigDict(extra="ignore")

    checkpoints: Any = Field(None, description="One boolean per checkpoint")
    quizzes: Any = Field(None, description="Quiz key -> answered correctly")


# ==============================================================================
# Response Schemas
# ==============================================================================


class ProgressResponse(BaseModel):
    """Stored progress (or the empty fresh-session shape)."""

    checkpoints: list[bool] = Field(default_factory=list)
    quizzes: dict[str, bool] = Field(default_factory=dict)
    updated_at: datetime | None = None
    message: str | None = None

    @classmethod
    def from_entity(cls, entity: ProgressRecord) -> "ProgressResponse":
        """Create response from entity."""
        return cls(
            checkpoints=entity.checkpoints,
            quizzes=entity.quizzes,
            updated_at=entity.updated_at,
            message=FRESH_SESSION_MESSAGE if entity.is_empty else None,
        )


class ProgressStatsResponse(BaseModel):
    """Completion statistics."""

    model_config = ConfigDict(from_attributes=True)

    total_checkpoints: int
    completed_checkpoints: int
    completion_rate: int = Field(description="0-100 percentage")
    is_completed: bool

    @classmethod
    def from_stats(cls, stats: ProgressStats) -> "ProgressStatsResponse":
        return cls.model_validate(stats)


class SaveProgressResponse(BaseModel):
    """Result of a successful save."""

    success: bool = True
    progress: ProgressResponse
    stats: ProgressStatsResponse

    @classmethod
    def from_saved(cls, saved: SavedProgress) -> "SaveProgressResponse":
        return cls(
            progress=ProgressResponse(
                checkpoints=saved.record.checkpoints,
                quizzes=saved.record.quizzes,
                updated_at=saved.record.updated_at,
            ),
            stats=ProgressStatsResponse.from_stats(saved.stats),
        )


class UserProgressItem(BaseModel):
    """One video in a user's progress list."""

    video_id: str
    checkpoints: list[bool]
    quizzes: dict[str, bool]
    updated_at: datetime | None = None
    stats: ProgressStatsResponse

    @classmethod
    def from_saved(cls, saved: SavedProgress) -> "UserProgressItem":
        return cls(
            video_id=saved.record.video_id,
            checkpoints=saved.record.checkpoints,
            quizzes=saved.record.quizzes,
            updated_at=saved.record.updated_at,
            stats=ProgressStatsResponse.from_stats(saved.stats),
        )


class UserProgressListResponse(BaseModel):
    """All progress of a user, most recently updated first."""

    progress: list[UserProgressItem]
    total: int


# ==============================================================================
# Generic Response
# ==============================================================================


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str
    success: bool = True

"""Video progress service layer.

Business logic for:
- Reading progress (fresh sessions get an empty record)
- Saving client snapshots: validate, reject regressions, merge, persist
- Resetting progress
- Listing a user's progress with completion statistics
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from watchprogress.core.locks import KeyedLock, LockAcquireError

from .merge import find_regressions, merge_progress
from .models import (
    COMPLETION_THRESHOLD,
    ProgressRecord,
    ProgressStats,
    SavedProgress,
)
from .validation import (
    InvalidProgress,
    InvalidReason,
    validate_identifiers,
    validate_progress,
)


if TYPE_CHECKING:
    from watchprogress.core.locks import ProgressLock

    from .storage import ProgressStore

logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class ProgressError(Exception):
    """Base progress error."""

    def __init__(self, message: str, code: str = "progress_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidInputError(ProgressError):
    """Malformed snapshot or missing identifier; nothing was persisted."""

    def __init__(self, reason: InvalidReason, message: str):
        self.reason = reason
        super().__init__(message, reason.value)

    @classmethod
    def from_result(cls, result: InvalidProgress) -> "InvalidInputError":
        return cls(result.reason, result.message)


class RegressionRejectedError(ProgressError):
    """Snapshot would un-complete stored checkpoints; record left untouched."""

    def __init__(self, indices: list[int]):
        self.indices = indices
        super().__init__(
            "Cannot uncomplete previously completed checkpoints",
            "checkpoint_regression",
        )


class StorageUnavailableError(ProgressError):
    """Persistence layer failure; existing data unaffected, safe to retry."""

    def __init__(self, message: str = "Progress storage unavailable"):
        super().__init__(message, "storage_unavailable")


# ==============================================================================
# Progress Service
# ==============================================================================


class ProgressService:
    """Service for checkpoint progress tracking.

    The store is injected and owned by the caller. Saves for the same
    (video, user) run one at a time through ``locks``; reads never lock.
    """

    def __init__(
        self,
        store: "ProgressStore",
        locks: "ProgressLock | None" = None,
        completion_threshold: float = COMPLETION_THRESHOLD,
    ):
        self.store = store
        self.locks = locks or KeyedLock()
        self.completion_threshold = completion_threshold

    def _stats(self, checkpoints: list[bool]) -> ProgressStats:
        return ProgressStats.from_checkpoints(checkpoints, self.completion_threshold)

    async def read_progress(self, video_id: str, user_id: str) -> ProgressRecord:
        """Get stored progress, or an empty record for a fresh session.

        Raises:
            InvalidInputError: If an identifier is empty
        """
        invalid = validate_identifiers(video_id, user_id)
        if invalid is not None:
            raise InvalidInputError.from_result(invalid)

        record = await self.store.get(video_id, user_id)
        return record or ProgressRecord.empty(video_id, user_id)

    async def save_progress(
        self,
        video_id: str,
        user_id: str,
        checkpoints: object,
        quizzes: object = None,
    ) -> SavedProgress:
        """Merge a client snapshot into stored progress.

        Args:
            video_id: Video identifier
            user_id: User identifier
            checkpoints: Client checkpoint vector (unvalidated JSON)
            quizzes: Optional client quiz map (unvalidated JSON)

        Returns:
            The persisted merged record with completion stats

        Raises:
            InvalidInputError: Malformed snapshot or identifiers
            RegressionRejectedError: Snapshot un-completes a stored checkpoint
            StorageUnavailableError: Store or lock backend failure
        """
        result = validate_progress(video_id, user_id, checkpoints, quizzes)
        if isinstance(result, InvalidProgress):
            logger.info(
                "progress_input_rejected",
                video_id=video_id,
                user_id=user_id,
                reason=result.reason.value,
            )
            raise InvalidInputError.from_result(result)

        try:
            async with self.locks.hold(video_id, user_id):
                existing = await self.store.get(video_id, user_id)
                existing = existing or ProgressRecord.empty(video_id, user_id)

                regressions = find_regressions(
                    existing.checkpoints, result.checkpoints
                )
                if regressions:
                    logger.warning(
                        "progress_regression_rejected",
                        video_id=video_id,
                        user_id=user_id,
                        indices=regressions,
                    )
                    raise RegressionRejectedError(regressions)

                merged_checkpoints, merged_quizzes = merge_progress(existing, result)
                previous, saved = await self.store.upsert(
                    ProgressRecord(
                        video_id=video_id,
                        user_id=user_id,
                        checkpoints=merged_checkpoints,
                        quizzes=merged_quizzes,
                        updated_at=datetime.now(UTC),
                    )
                )
        except LockAcquireError as e:
            logger.error(
                "progress_lock_failed",
                video_id=video_id,
                user_id=user_id,
                error=str(e),
            )
            raise StorageUnavailableError from e

        stats = self._stats(saved.checkpoints)
        logger.info(
            "progress_saved" if previous else "progress_created",
            video_id=video_id,
            user_id=user_id,
            completed=stats.completed_checkpoints,
            total=stats.total_checkpoints,
            is_completed=stats.is_completed,
        )
        return SavedProgress(record=saved, stats=stats)

    async def reset_progress(self, video_id: str, user_id: str) -> None:
        """Delete stored progress. Deleting a missing record succeeds."""
        invalid = validate_identifiers(video_id, user_id)
        if invalid is not None:
            raise InvalidInputError.from_result(invalid)

        try:
            async with self.locks.hold(video_id, user_id):
                await self.store.delete(video_id, user_id)
        except LockAcquireError as e:
            raise StorageUnavailableError from e

        logger.info("progress_reset", video_id=video_id, user_id=user_id)

    async def list_progress(self, user_id: str) -> list[SavedProgress]:
        """Get all progress of a user, most recently updated first."""
        if not isinstance(user_id, str) or not user_id.strip():
            raise InvalidInputError(
                InvalidReason.MISSING_USER_ID, "User ID is required"
            )

        records = await self.store.list_for_user(user_id)
        records.sort(
            key=lambda r: r.updated_at or datetime.min.replace(tzinfo=UTC),
            reverse=True,
        )
        return [
            SavedProgress(
                record=record,
                stats=self._stats(record.checkpoints),
            )
            for record in records
        ]

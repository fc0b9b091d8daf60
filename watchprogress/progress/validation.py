"""Validation of client-reported progress snapshots.

Incoming JSON is checked before any merge runs and turned into either a
``ValidProgress`` (typed checkpoint vector + quiz map) or an
``InvalidProgress`` carrying a machine-readable reason.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


QUIZ_KEY_PATTERN = re.compile(r"[0-9]+")


class InvalidReason(str, Enum):
    """Why a snapshot was rejected."""

    MISSING_VIDEO_ID = "missing_video_id"
    MISSING_USER_ID = "missing_user_id"
    INVALID_CHECKPOINTS = "invalid_checkpoints"
    INVALID_QUIZZES = "invalid_quizzes"


@dataclass(frozen=True)
class ValidProgress:
    checkpoints: list[bool]
    quizzes: dict[str, bool] = field(default_factory=dict)


@dataclass(frozen=True)
class InvalidProgress:
    reason: InvalidReason
    message: str


ValidationResult = ValidProgress | InvalidProgress


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def validate_identifiers(video_id: Any, user_id: Any) -> InvalidProgress | None:
    """Check both halves of the (video, user) key are non-empty strings."""
    if _is_blank(video_id):
        return InvalidProgress(InvalidReason.MISSING_VIDEO_ID, "Video ID is required")
    if _is_blank(user_id):
        return InvalidProgress(InvalidReason.MISSING_USER_ID, "User ID is required")
    return None


def validate_checkpoints(checkpoints: Any) -> bool:
    """Any-length sequence of real booleans (0/1 and "true" are rejected)."""
    if not isinstance(checkpoints, list | tuple):
        return False
    return all(isinstance(value, bool) for value in checkpoints)


def validate_quizzes(quizzes: Any) -> bool:
    """Optional mapping of non-negative integer keys to booleans."""
    if quizzes is None:
        return True
    if not isinstance(quizzes, Mapping):
        return False
    return all(
        isinstance(key, str)
        and QUIZ_KEY_PATTERN.fullmatch(key) is not None
        and isinstance(value, bool)
        for key, value in quizzes.items()
    )


def validate_progress(
    video_id: Any,
    user_id: Any,
    checkpoints: Any,
    quizzes: Any = None,
) -> ValidationResult:
    """Validate a snapshot; first failing check wins."""
    invalid = validate_identifiers(video_id, user_id)
    if invalid is not None:
        return invalid

    if not validate_checkpoints(checkpoints):
        return InvalidProgress(
            InvalidReason.INVALID_CHECKPOINTS,
            "Invalid checkpoints format: expected a list of booleans",
        )

    if not validate_quizzes(quizzes):
        return InvalidProgress(
            InvalidReason.INVALID_QUIZZES,
            "Invalid quizzes format: expected non-negative integer keys "
            "with boolean values",
        )

    return ValidProgress(
        checkpoints=list(checkpoints),
        quizzes=dict(quizzes or {}),
    )

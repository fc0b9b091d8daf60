"""Monotonic merge of progress snapshots.

Checkpoints merge by pointwise OR and quizzes only ever gain ``True``
answers, so merging is idempotent and order-independent. Combined with the
regression check this keeps every completed item completed.
"""

from .models import ProgressRecord
from .validation import ValidProgress


def _flag(checkpoints: list[bool], index: int) -> bool:
    return index < len(checkpoints) and checkpoints[index]


def find_regressions(existing: list[bool], incoming: list[bool]) -> list[int]:
    """Indices completed in ``existing`` but false or missing in ``incoming``.

    Only indices within ``existing`` are checked; a shorter incoming vector
    un-completes everything past its end.
    """
    return [
        index
        for index, done in enumerate(existing)
        if done and not _flag(incoming, index)
    ]


def merge_checkpoints(existing: list[bool], incoming: list[bool]) -> list[bool]:
    """Pointwise OR over the longer of the two vectors."""
    length = max(len(existing), len(incoming))
    return [_flag(existing, i) or _flag(incoming, i) for i in range(length)]


def merge_quizzes(
    existing: dict[str, bool],
    incoming: dict[str, bool],
) -> dict[str, bool]:
    """Apply incoming correct answers; incoming ``False`` changes nothing."""
    merged = dict(existing)
    for key, correct in incoming.items():
        if correct:
            merged[key] = True
    return merged


def merge_progress(
    existing: ProgressRecord,
    incoming: ValidProgress,
) -> tuple[list[bool], dict[str, bool]]:
    """Merge a validated snapshot into the stored record."""
    return (
        merge_checkpoints(existing.checkpoints, incoming.checkpoints),
        merge_quizzes(existing.quizzes, incoming.quizzes),
    )

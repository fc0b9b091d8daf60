"""Tests for progress snapshot validation."""

import pytest

from watchprogress.progress.validation import (
    InvalidProgress,
    InvalidReason,
    ValidProgress,
    validate_checkpoints,
    validate_identifiers,
    validate_progress,
    validate_quizzes,
)


class TestValidateIdentifiers:
    """Tests for the (video, user) key check."""

    def test_valid(self):
        assert validate_identifiers("v1", "u1") is None

    @pytest.mark.parametrize("video_id", ["", "   ", None, 42])
    def test_missing_video_id(self, video_id):
        result = validate_identifiers(video_id, "u1")
        assert isinstance(result, InvalidProgress)
        assert result.reason == InvalidReason.MISSING_VIDEO_ID

    def test_missing_user_id(self):
        result = validate_identifiers("v1", "")
        assert result.reason == InvalidReason.MISSING_USER_ID

    def test_video_id_checked_first(self):
        result = validate_identifiers("", "")
        assert result.reason == InvalidReason.MISSING_VIDEO_ID


class TestValidateCheckpoints:
    """Tests for checkpoint vector validation."""

    @pytest.mark.parametrize(
        "checkpoints",
        [[], [True], [False, True, False], (True, False)],
    )
    def test_accepts_boolean_sequences(self, checkpoints):
        assert validate_checkpoints(checkpoints) is True

    @pytest.mark.parametrize(
        "checkpoints",
        [None, "true", {"0": True}, [1, 0], [True, "false"], [True, None], 5],
    )
    def test_rejects_other_values(self, checkpoints):
        assert validate_checkpoints(checkpoints) is False


class TestValidateQuizzes:
    """Tests for quiz map validation."""

    def test_absent_is_valid(self):
        assert validate_quizzes(None) is True

    def test_empty_is_valid(self):
        assert validate_quizzes({}) is True

    def test_integer_keys_with_booleans(self):
        assert validate_quizzes({"0": True, "12": False}) is True

    @pytest.mark.parametrize(
        "quizzes",
        [
            [True],
            "0",
            {"a": True},
            {"-1": True},
            {"1.5": True},
            {"": True},
            {"0": 1},
            {"0": "true"},
            {"1\n": True},
            {" 1": True},
        ],
    )
    def test_rejects_invalid(self, quizzes):
        assert validate_quizzes(quizzes) is False


class TestValidateProgress:
    """Tests for full snapshot validation."""

    def test_valid_snapshot(self):
        result = validate_progress("v1", "u1", [True, False], {"0": True})
        assert result == ValidProgress(checkpoints=[True, False], quizzes={"0": True})

    def test_quizzes_default_to_empty(self):
        result = validate_progress("v1", "u1", [True])
        assert isinstance(result, ValidProgress)
        assert result.quizzes == {}

    def test_tuple_is_normalized_to_list(self):
        result = validate_progress("v1", "u1", (True, False))
        assert result.checkpoints == [True, False]

    def test_invalid_checkpoints(self):
        result = validate_progress("v1", "u1", [1, 0])
        assert isinstance(result, InvalidProgress)
        assert result.reason == InvalidReason.INVALID_CHECKPOINTS

    def test_invalid_quizzes(self):
        result = validate_progress("v1", "u1", [True], {"x": True})
        assert result.reason == InvalidReason.INVALID_QUIZZES

    def test_identifiers_checked_before_payload(self):
        result = validate_progress("", "u1", "garbage", "garbage")
        assert result.reason == InvalidReason.MISSING_VIDEO_ID

    def test_reason_values_are_wire_codes(self):
        assert InvalidReason.INVALID_CHECKPOINTS.value == "invalid_checkpoints"
        assert InvalidReason.MISSING_USER_ID.value == "missing_user_id"

"""Unit tests for the mastery gate and reflection word counts."""

import pytest

from lyceum.engines.progression.mastery import (
    MASTERY_THRESHOLD,
    count_words,
    evaluate_mastery,
    minimum_word_count,
    validate_reflection,
    validate_score,
)
from lyceum.errors import ValidationError
from lyceum.kernel.models.progress import ProgressStatus, PromptType


class TestWordCounts:
    """Tests for word counting and per-prompt minimums."""

    def test_count_words_splits_on_any_whitespace(self):
        assert count_words("Know\tthyself,\n  Socrates said ") == 4
        assert count_words("") == 0
        assert count_words(None) == 0

    def test_minimums(self):
        assert minimum_word_count(PromptType.PRE_LECTURE) == 30
        assert minimum_word_count("initial") == 30
        assert minimum_word_count(PromptType.MASTERY) == 50
        assert minimum_word_count(PromptType.DISCUSSION) == 0

    def test_unknown_prompt_type_uses_default(self):
        assert minimum_word_count("essay") == 30

    def test_validate_reflection_returns_count(self):
        assert validate_reflection(PromptType.MASTERY, "idea " * 50) == 50

    def test_validate_reflection_too_short(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_reflection(PromptType.INITIAL, "idea " * 29)
        assert "30" in exc_info.value.message

    def test_discussion_may_be_empty(self):
        assert validate_reflection(PromptType.DISCUSSION, "") == 0


class TestEvaluateMastery:
    """Tests for the 70-point threshold."""

    def test_threshold_is_inclusive(self):
        decision = evaluate_mastery(MASTERY_THRESHOLD)
        assert decision.mastered is True
        assert decision.next_status == ProgressStatus.MASTERED

    def test_below_threshold(self):
        decision = evaluate_mastery(69)
        assert decision.mastered is False
        assert decision.next_status == ProgressStatus.INITIAL_REFLECTION

    def test_bounds_accepted(self):
        assert evaluate_mastery(0).mastered is False
        assert evaluate_mastery(100).mastered is True

    @pytest.mark.parametrize("bad", [-0.1, 101, float("nan"), False, None, "90"])
    def test_rejected_scores(self, bad):
        with pytest.raises(ValidationError):
            validate_score(bad)

"""Unit tests for the progress state machine."""

import pytest

from lyceum.errors import SequenceError, ValidationError
from lyceum.kernel.models.progress import ProgressStatus, PromptType
from lyceum.orchestration.state_machine import (
    ProgressEvent,
    TransitionPayload,
    is_at_least,
    is_valid_transition,
    status_rank,
    transition,
    valid_transitions,
)

S = ProgressStatus


def words(n: int) -> str:
    return " ".join(["thought"] * n)


def reflection(prompt_type: PromptType, n_words: int = 60) -> TransitionPayload:
    return TransitionPayload(prompt_type=prompt_type, content=words(n_words))


def score(value) -> TransitionPayload:
    return TransitionPayload(score=value)


class TestSimpleEvents:
    """unlock, start and viewed only ever move forward."""

    def test_unlock_from_locked(self):
        result = transition(S.LOCKED, ProgressEvent.UNLOCK)
        assert result.status == S.READY
        assert result.changed is True

    def test_start_from_locked_and_ready(self):
        assert transition(S.LOCKED, "start").status == S.STARTED
        assert transition(S.READY, "start").status == S.STARTED

    def test_start_after_started_is_a_no_op(self):
        for status in (S.STARTED, S.WATCHED, S.MASTERED):
            result = transition(status, ProgressEvent.START)
            assert result.status == status
            assert result.changed is False

    def test_viewed_moves_to_watched(self):
        for status in (S.LOCKED, S.READY, S.STARTED):
            assert transition(status, ProgressEvent.VIEWED).status == S.WATCHED

    def test_viewed_never_regresses(self):
        for status in (S.WATCHED, S.INITIAL_REFLECTION, S.MASTERY_TESTING, S.MASTERED):
            result = transition(status, ProgressEvent.VIEWED)
            assert result.status == status
            assert result.changed is False

    def test_unknown_event_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            transition(S.READY, "teleport")


class TestReflections:
    """Reflections are accepted only at their stage and above the word minimum."""

    def test_pre_lecture_at_ready_starts_the_lecture(self):
        result = transition(S.READY, ProgressEvent.REFLECTION, reflection(PromptType.PRE_LECTURE))
        assert result.status == S.STARTED
        assert result.word_count == 60

    def test_pre_lecture_after_watching(self):
        result = transition(S.WATCHED, ProgressEvent.REFLECTION, reflection(PromptType.PRE_LECTURE))
        assert result.status == S.INITIAL_REFLECTION

    def test_initial_after_watching(self):
        result = transition(S.WATCHED, ProgressEvent.REFLECTION, reflection(PromptType.INITIAL))
        assert result.status == S.INITIAL_REFLECTION

    def test_mastery_reflection_moves_to_testing(self):
        result = transition(
            S.INITIAL_REFLECTION, ProgressEvent.REFLECTION, reflection(PromptType.MASTERY)
        )
        assert result.status == S.MASTERY_TESTING

    def test_mastery_reflection_can_be_resubmitted(self):
        result = transition(S.MASTERY_TESTING, ProgressEvent.REFLECTION, reflection(PromptType.MASTERY))
        assert result.status == S.MASTERY_TESTING
        assert result.changed is False

    def test_discussion_only_after_mastery(self):
        result = transition(S.MASTERED, ProgressEvent.REFLECTION, reflection(PromptType.DISCUSSION, 1))
        assert result.status == S.MASTERED
        with pytest.raises(SequenceError):
            transition(S.WATCHED, ProgressEvent.REFLECTION, reflection(PromptType.DISCUSSION))

    def test_initial_before_watching_is_out_of_sequence(self):
        with pytest.raises(SequenceError) as exc_info:
            transition(S.STARTED, ProgressEvent.REFLECTION, reflection(PromptType.INITIAL))
        assert exc_info.value.current_status == "STARTED"
        assert exc_info.value.event == "reflection"

    def test_mastery_reflection_too_short(self):
        with pytest.raises(ValidationError) as exc_info:
            transition(
                S.INITIAL_REFLECTION, ProgressEvent.REFLECTION, reflection(PromptType.MASTERY, 49)
            )
        assert exc_info.value.invalid_fields == ["content"]

    def test_initial_reflection_at_exact_minimum(self):
        result = transition(S.WATCHED, ProgressEvent.REFLECTION, reflection(PromptType.INITIAL, 30))
        assert result.word_count == 30

    def test_missing_prompt_type(self):
        with pytest.raises(ValidationError):
            transition(S.WATCHED, ProgressEvent.REFLECTION, TransitionPayload(content=words(40)))


class TestMasteryScore:
    """Mastery scores decide between MASTERED and another reflection round."""

    def test_passing_score_masters(self):
        result = transition(S.MASTERY_TESTING, ProgressEvent.MASTERY_SCORE, score(70))
        assert result.status == S.MASTERED
        assert result.completed is True
        assert result.mastery.mastered is True

    def test_failing_score_returns_to_initial_reflection(self):
        result = transition(S.MASTERY_TESTING, ProgressEvent.MASTERY_SCORE, score(69.9))
        assert result.status == S.INITIAL_REFLECTION
        assert result.completed is False

    def test_score_accepted_from_watched(self):
        assert transition(S.WATCHED, ProgressEvent.MASTERY_SCORE, score(85)).status == S.MASTERED

    def test_mastered_is_terminal(self):
        result = transition(S.MASTERED, ProgressEvent.MASTERY_SCORE, score(10))
        assert result.status == S.MASTERED
        assert result.changed is False
        assert result.completed is False

    def test_score_before_watching_is_out_of_sequence(self):
        with pytest.raises(SequenceError):
            transition(S.STARTED, ProgressEvent.MASTERY_SCORE, score(90))

    @pytest.mark.parametrize("bad", [-1, 100.5, float("nan"), True, "80"])
    def test_invalid_scores_rejected(self, bad):
        with pytest.raises(ValidationError):
            transition(S.MASTERY_TESTING, ProgressEvent.MASTERY_SCORE, score(bad))

    def test_payload_keeps_score_as_given(self):
        """No coercion on the way in: True stays a bool and is rejected as a score."""
        payload = TransitionPayload(score=True)
        assert payload.score is True
        with pytest.raises(ValidationError) as exc_info:
            transition(S.MASTERY_TESTING, ProgressEvent.MASTERY_SCORE, payload)
        assert exc_info.value.invalid_fields == ["score"]

    def test_missing_score(self):
        with pytest.raises(ValidationError):
            transition(S.MASTERY_TESTING, ProgressEvent.MASTERY_SCORE)


class TestDirectTransitions:
    """The status table used by staff edits."""

    def test_valid_transitions_follow_the_workflow(self):
        assert valid_transitions(S.LOCKED) == [S.READY]
        assert valid_transitions(S.MASTERY_TESTING) == [S.INITIAL_REFLECTION, S.MASTERED]
        assert valid_transitions(S.MASTERED) == []

    def test_is_valid_transition(self):
        assert is_valid_transition("WATCHED", "INITIAL_REFLECTION") is True
        assert is_valid_transition(S.LOCKED, S.STARTED) is False
        assert is_valid_transition(S.MASTERED, S.INITIAL_REFLECTION) is False

    def test_rank_and_floor(self):
        assert status_rank(S.LOCKED) == 0
        assert status_rank(S.MASTERED) == 6
        assert is_at_least(S.WATCHED, S.STARTED) is True
        assert is_at_least(S.READY, S.STARTED) is False

    def test_unknown_status(self):
        with pytest.raises(ValidationError):
            status_rank("FINISHED")

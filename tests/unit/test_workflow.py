"""Unit tests for learner-facing workflow helpers."""

from lyceum.engines.progression.workflow import (
    SimpleStatus,
    completion_percentage,
    next_action,
    prompt_type_for_status,
    simplify_status,
    step_description,
)
from lyceum.kernel.models.progress import ProgressStatus, PromptType

S = ProgressStatus


class TestWorkflowHelpers:
    def test_prompt_for_status(self):
        assert prompt_type_for_status(S.READY) == PromptType.PRE_LECTURE
        assert prompt_type_for_status(S.WATCHED) == PromptType.INITIAL
        assert prompt_type_for_status(S.INITIAL_REFLECTION) == PromptType.MASTERY
        assert prompt_type_for_status(S.MASTERED) == PromptType.DISCUSSION
        assert prompt_type_for_status(S.STARTED) is None

    def test_completion_percentage_is_monotonic(self):
        values = [completion_percentage(s) for s in ProgressStatus]
        assert values == [0, 10, 20, 40, 60, 80, 100]

    def test_simplify_status(self):
        assert simplify_status(S.MASTERED) == SimpleStatus.COMPLETED
        assert simplify_status(S.LOCKED) == SimpleStatus.LOCKED
        assert simplify_status("READY") == SimpleStatus.AVAILABLE
        assert simplify_status(S.MASTERY_TESTING) == SimpleStatus.IN_PROGRESS

    def test_every_status_has_guidance(self):
        for status in ProgressStatus:
            assert next_action(status)
            assert step_description(status)

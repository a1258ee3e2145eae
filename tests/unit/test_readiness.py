"""Unit tests for prerequisite readiness."""

import pytest

from lyceum.engines.progression.readiness import (
    PrerequisiteState,
    compute_readiness,
    order_prerequisites,
    validate_importance,
)
from lyceum.errors import ValidationError


def prereq(required=True, importance=3, satisfied=False, title=None):
    return PrerequisiteState(required=required, importance=importance, satisfied=satisfied, title=title)


class TestComputeReadiness:
    """Weighted score versus the required-only gate."""

    def test_no_prerequisites_is_fully_ready(self):
        readiness = compute_readiness([])
        assert readiness.score == 100
        assert readiness.satisfied is True
        assert readiness.meets_threshold is True

    def test_weighted_score_with_missing_required(self):
        """Required 5 done, required 3 missing, recommended 2 done -> 70%, gate closed."""
        readiness = compute_readiness([
            prereq(required=True, importance=5, satisfied=True),
            prereq(required=True, importance=3, satisfied=False),
            prereq(required=False, importance=2, satisfied=True),
        ])
        assert readiness.score == 70
        assert readiness.meets_threshold is True
        assert readiness.satisfied is False
        assert readiness.required_total == 2
        assert readiness.required_met == 1
        assert readiness.recommended_met == 1

    def test_score_below_threshold(self):
        """3 of 5 equal-weight prerequisites -> 60, and a required one is missing."""
        readiness = compute_readiness(
            [prereq(satisfied=True)] * 3 + [prereq(satisfied=False)] * 2
        )
        assert readiness.score == 60
        assert readiness.meets_threshold is False
        assert readiness.satisfied is False

    def test_recommended_only_never_blocks(self):
        readiness = compute_readiness([prereq(required=False, importance=5, satisfied=False)])
        assert readiness.score == 0
        assert readiness.satisfied is True

    def test_all_required_done_opens_gate_despite_low_score(self):
        readiness = compute_readiness([
            prereq(required=True, importance=1, satisfied=True),
            prereq(required=False, importance=5, satisfied=False),
        ])
        assert readiness.score == 17
        assert readiness.satisfied is True
        assert readiness.meets_threshold is False

    def test_score_is_rounded(self):
        readiness = compute_readiness([
            prereq(importance=1, satisfied=True),
            prereq(importance=2, satisfied=False),
        ])
        assert readiness.score == 33

    def test_half_rounds_up(self):
        """1 of 8 weight is 12.5%, shown as 13."""
        readiness = compute_readiness([
            prereq(importance=1, satisfied=True),
            prereq(importance=5, satisfied=False),
            prereq(importance=2, satisfied=False),
        ])
        assert readiness.score == 13

    def test_threshold_uses_unrounded_share(self):
        """139 of 200 weight is 69.5%: displayed as 70 but below the threshold."""
        readiness = compute_readiness(
            [prereq(importance=5, satisfied=True)] * 27
            + [prereq(importance=2, satisfied=True)] * 2
            + [prereq(importance=5, satisfied=False)] * 12
            + [prereq(importance=1, satisfied=False)]
        )
        assert readiness.score == 70
        assert readiness.meets_threshold is False

    def test_required_three_done_required_two_missing(self):
        readiness = compute_readiness([
            prereq(required=True, importance=3, satisfied=True),
            prereq(required=True, importance=2, satisfied=False),
        ])
        assert readiness.score == 60
        assert readiness.satisfied is False
        assert readiness.missing_required == []
        assert readiness.required_met == 1

    def test_satisfying_more_never_lowers_score(self):
        importances = [5, 1, 4, 2, 3, 3, 1]
        flags = [False] * len(importances)
        previous = compute_readiness([prereq(importance=i) for i in importances]).score
        assert previous == 0
        for index in range(len(importances)):
            flags[index] = True
            current = compute_readiness(
                [prereq(importance=i, satisfied=f) for i, f in zip(importances, flags)]
            ).score
            assert current >= previous
            previous = current
        assert previous == 100

    def test_bad_importance_rejected(self):
        with pytest.raises(ValidationError):
            compute_readiness([prereq(importance=0)])


class TestOrdering:
    def test_required_first_then_importance(self):
        items = order_prerequisites([
            prereq(required=False, importance=5, title="c"),
            prereq(required=True, importance=2, title="b"),
            prereq(required=True, importance=4, title="a"),
        ])
        assert [p.title for p in items] == ["a", "b", "c"]


class TestValidateImportance:
    @pytest.mark.parametrize("value", [1, 3, 5])
    def test_in_range(self, value):
        assert validate_importance(value) == value

    @pytest.mark.parametrize("value", [0, 6, 2.5, True, "3"])
    def test_out_of_range_or_wrong_type(self, value):
        with pytest.raises(ValidationError) as exc_info:
            validate_importance(value, field_name="importance")
        assert exc_info.value.invalid_fields == ["importance"]

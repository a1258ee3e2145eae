"""
Progression Engine - lecture workflow, prerequisite readiness and mastery.

Pure rules live in ``readiness``, ``mastery`` and ``workflow`` (and the state
machine in ``lyceum.orchestration``); ``progression_service`` applies them
to stored progress.
"""

from lyceum.engines.progression.mastery import (
    MASTERY_THRESHOLD,
    MasteryDecision,
    count_words,
    evaluate_mastery,
    minimum_word_count,
    validate_reflection,
)
from lyceum.engines.progression.readiness import (
    READINESS_THRESHOLD,
    PrerequisiteState,
    Readiness,
    compute_readiness,
)

__all__ = [
    "MASTERY_THRESHOLD",
    "MasteryDecision",
    "count_words",
    "evaluate_mastery",
    "minimum_word_count",
    "validate_reflection",
    "READINESS_THRESHOLD",
    "PrerequisiteState",
    "Readiness",
    "compute_readiness",
]

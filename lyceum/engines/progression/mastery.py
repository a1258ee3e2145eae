"""
Mastery gate: reflection word minimums and the mastery score threshold.
"""

import math
from typing import Optional, Union

from pydantic import BaseModel

from lyceum.errors import ValidationError
from lyceum.kernel.models.progress import ProgressStatus, PromptType

MASTERY_THRESHOLD = 70
MIN_SCORE = 0
MAX_SCORE = 100

MIN_WORDS = {
    PromptType.PRE_LECTURE: 30,
    PromptType.INITIAL: 30,
    PromptType.MASTERY: 50,
    PromptType.DISCUSSION: 0,
}
DEFAULT_MIN_WORDS = 30


class MasteryDecision(BaseModel):
    """Outcome of grading a mastery attempt."""

    score: float
    threshold: int = MASTERY_THRESHOLD
    mastered: bool
    next_status: ProgressStatus


def count_words(text: Optional[str]) -> int:
    """Number of whitespace-separated tokens."""
    if not text:
        return 0
    return len(text.split())


def minimum_word_count(prompt_type: Union[PromptType, str]) -> int:
    """Required word count for a prompt type; unknown types get the default."""
    try:
        return MIN_WORDS[PromptType(prompt_type)]
    except ValueError:
        return DEFAULT_MIN_WORDS


def validate_reflection(prompt_type: Union[PromptType, str], content: Optional[str]) -> int:
    """
    Check a reflection against its minimum length.

    Returns:
        The word count

    Raises:
        ValidationError: If the content is shorter than the minimum
    """
    words = count_words(content)
    required = minimum_word_count(prompt_type)
    if words < required:
        label = prompt_type.value if isinstance(prompt_type, PromptType) else str(prompt_type)
        raise ValidationError(
            f"A {label} reflection needs at least {required} words (got {words})",
            invalid_fields=["content"],
        )
    return words


def validate_score(score) -> float:
    """Reject anything that is not a finite number in [0, 100]."""
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise ValidationError("Score must be a number", invalid_fields=["score"])
    if math.isnan(score) or not MIN_SCORE <= score <= MAX_SCORE:
        raise ValidationError(
            f"Score must be between {MIN_SCORE} and {MAX_SCORE}",
            invalid_fields=["score"],
        )
    return float(score)


def evaluate_mastery(score) -> MasteryDecision:
    """Mastered at or above the threshold; otherwise back to initial reflection."""
    value = validate_score(score)
    mastered = value >= MASTERY_THRESHOLD
    return MasteryDecision(
        score=value,
        mastered=mastered,
        next_status=ProgressStatus.MASTERED if mastered else ProgressStatus.INITIAL_REFLECTION,
    )

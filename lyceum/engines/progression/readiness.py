"""
Prerequisite readiness.

Two separate answers come out of a lecture's prerequisite list:

- ``score``: importance-weighted share of satisfied prerequisites (0-100).
  Display only.
- ``satisfied``: every required prerequisite is satisfied. This is the gate.

The score rounds half up. ``meets_threshold`` compares the unrounded share
with 70%, so 69.5% does not meet it; nothing gates on it.
"""

import uuid
from typing import Iterable, List, Optional

from pydantic import BaseModel

from lyceum.errors import ValidationError

READINESS_THRESHOLD = 70
MIN_IMPORTANCE = 1
MAX_IMPORTANCE = 5


class PrerequisiteState(BaseModel):
    """One prerequisite edge, as seen by a particular user."""

    lecture_id: Optional[uuid.UUID] = None
    title: Optional[str] = None
    required: bool = True
    importance: int = 3
    satisfied: bool = False


class Readiness(BaseModel):
    score: int
    satisfied: bool
    meets_threshold: bool
    threshold: int = READINESS_THRESHOLD
    required_total: int = 0
    required_met: int = 0
    recommended_total: int = 0
    recommended_met: int = 0
    missing_required: List[uuid.UUID] = []
    prerequisites: List[PrerequisiteState] = []


def validate_importance(importance, field_name: str = "importance_level") -> int:
    if isinstance(importance, bool) or not isinstance(importance, int):
        raise ValidationError("Importance level must be an integer", invalid_fields=[field_name])
    if not MIN_IMPORTANCE <= importance <= MAX_IMPORTANCE:
        raise ValidationError(
            f"Importance level must be between {MIN_IMPORTANCE} and {MAX_IMPORTANCE}",
            invalid_fields=[field_name],
        )
    return importance


def order_prerequisites(prerequisites: Iterable[PrerequisiteState]) -> List[PrerequisiteState]:
    """Required first, then by importance, highest first."""
    return sorted(prerequisites, key=lambda p: (not p.required, -p.importance))


def compute_readiness(prerequisites: Iterable[PrerequisiteState]) -> Readiness:
    items = order_prerequisites(prerequisites)
    for item in items:
        validate_importance(item.importance)

    total_weight = sum(p.importance for p in items)
    met_weight = sum(p.importance for p in items if p.satisfied)
    if total_weight == 0:
        score, meets_threshold = 100, True
    else:
        # Integer arithmetic: half up, no float drift at .5
        score = (200 * met_weight + total_weight) // (2 * total_weight)
        meets_threshold = 100 * met_weight >= READINESS_THRESHOLD * total_weight

    required = [p for p in items if p.required]
    recommended = [p for p in items if not p.required]
    missing = [p for p in required if not p.satisfied]

    return Readiness(
        score=score,
        satisfied=not missing,
        meets_threshold=meets_threshold,
        required_total=len(required),
        required_met=len(required) - len(missing),
        recommended_total=len(recommended),
        recommended_met=sum(1 for p in recommended if p.satisfied),
        missing_required=[p.lecture_id for p in missing if p.lecture_id is not None],
        prerequisites=items,
    )

"""
Progress state machine for a learner on one lecture.

Statuses advance LOCKED -> READY -> STARTED -> WATCHED -> INITIAL_REFLECTION
-> MASTERY_TESTING -> MASTERED. The only backwards move is a failed mastery
score, which returns the learner to INITIAL_REFLECTION. MASTERED is terminal.

Everything here is pure: callers load the current status, call
``transition`` and persist the result.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple, Union

from pydantic import BaseModel

from lyceum.errors import SequenceError, ValidationError
from lyceum.engines.progression.mastery import (
    MasteryDecision,
    evaluate_mastery,
    validate_reflection,
)
from lyceum.kernel.models.progress import ProgressStatus, PromptType


class ProgressEvent(str, Enum):
    """Things a learner (or the system) can do to a progress record."""
    UNLOCK = "unlock"
    START = "start"
    VIEWED = "viewed"
    REFLECTION = "reflection"
    MASTERY_SCORE = "mastery_score"


_STATUS_ORDER: List[ProgressStatus] = list(ProgressStatus)

# Direct status edits (staff tools, PATCH progress)
_DIRECT_TRANSITIONS: Dict[ProgressStatus, Set[ProgressStatus]] = {
    ProgressStatus.LOCKED: {ProgressStatus.READY},
    ProgressStatus.READY: {ProgressStatus.STARTED},
    ProgressStatus.STARTED: {ProgressStatus.WATCHED},
    ProgressStatus.WATCHED: {ProgressStatus.INITIAL_REFLECTION},
    ProgressStatus.INITIAL_REFLECTION: {ProgressStatus.MASTERY_TESTING},
    ProgressStatus.MASTERY_TESTING: {ProgressStatus.MASTERED, ProgressStatus.INITIAL_REFLECTION},
    ProgressStatus.MASTERED: set(),
}

# (prompt type, current status) -> status after a reflection is accepted
_REFLECTION_TRANSITIONS: Dict[Tuple[PromptType, ProgressStatus], ProgressStatus] = {
    (PromptType.PRE_LECTURE, ProgressStatus.READY): ProgressStatus.STARTED,
    (PromptType.PRE_LECTURE, ProgressStatus.WATCHED): ProgressStatus.INITIAL_REFLECTION,
    (PromptType.INITIAL, ProgressStatus.WATCHED): ProgressStatus.INITIAL_REFLECTION,
    (PromptType.MASTERY, ProgressStatus.INITIAL_REFLECTION): ProgressStatus.MASTERY_TESTING,
    (PromptType.MASTERY, ProgressStatus.MASTERY_TESTING): ProgressStatus.MASTERY_TESTING,
    (PromptType.DISCUSSION, ProgressStatus.MASTERED): ProgressStatus.MASTERED,
}

MASTERY_SCORE_STATUSES = frozenset({
    ProgressStatus.WATCHED,
    ProgressStatus.INITIAL_REFLECTION,
    ProgressStatus.MASTERY_TESTING,
    ProgressStatus.MASTERED,
})


class TransitionPayload(BaseModel):
    """Event data; which fields matter depends on the event."""

    prompt_type: Optional[PromptType] = None
    content: Optional[str] = None
    # Left untyped so booleans and numeric strings reach validate_score
    score: Any = None
    ai_evaluation: Optional[dict] = None


class TransitionResult(BaseModel):
    event: ProgressEvent
    previous: ProgressStatus
    status: ProgressStatus
    changed: bool
    completed: bool = False  # first entry into MASTERED
    word_count: Optional[int] = None
    mastery: Optional[MasteryDecision] = None


def coerce_status(status: Union[ProgressStatus, str]) -> ProgressStatus:
    try:
        return ProgressStatus(status)
    except ValueError:
        raise ValidationError(f"Unknown progress status: {status}", invalid_fields=["status"])


def status_rank(status: Union[ProgressStatus, str]) -> int:
    return _STATUS_ORDER.index(coerce_status(status))


def is_at_least(status: Union[ProgressStatus, str], floor: ProgressStatus) -> bool:
    return status_rank(status) >= status_rank(floor)


def valid_transitions(from_status: Union[ProgressStatus, str]) -> List[ProgressStatus]:
    """Statuses reachable by a direct edit, in workflow order."""
    targets = _DIRECT_TRANSITIONS[coerce_status(from_status)]
    return [s for s in _STATUS_ORDER if s in targets]


def is_valid_transition(
    from_status: Union[ProgressStatus, str],
    to_status: Union[ProgressStatus, str],
) -> bool:
    return coerce_status(to_status) in _DIRECT_TRANSITIONS[coerce_status(from_status)]


def _out_of_sequence(event: ProgressEvent, current: ProgressStatus, detail: str = "") -> SequenceError:
    message = f"Cannot apply '{event.value}' while progress is {current.value}"
    if detail:
        message = f"{message}: {detail}"
    return SequenceError(message, current_status=current.value, event=event.value)


def _advance_to(current: ProgressStatus, target: ProgressStatus) -> ProgressStatus:
    """Move forward to ``target``; statuses already past it stay put."""
    return current if is_at_least(current, target) else target


def transition(
    current_status: Union[ProgressStatus, str],
    event: Union[ProgressEvent, str],
    payload: Optional[TransitionPayload] = None,
) -> TransitionResult:
    """
    Compute the status that follows ``event``.

    Raises:
        SequenceError: If the event is not allowed from the current status
        ValidationError: If the payload is missing or invalid for the event
    """
    current = coerce_status(current_status)
    try:
        event = ProgressEvent(event)
    except ValueError:
        raise ValidationError(f"Unknown progress event: {event}", invalid_fields=["event"])
    payload = payload or TransitionPayload()

    word_count = None
    decision = None

    if event == ProgressEvent.UNLOCK:
        new_status = _advance_to(current, ProgressStatus.READY)

    elif event == ProgressEvent.START:
        new_status = _advance_to(current, ProgressStatus.STARTED)

    elif event == ProgressEvent.VIEWED:
        # Repeat views only refresh last_viewed, which is the caller's job
        new_status = _advance_to(current, ProgressStatus.WATCHED)

    elif event == ProgressEvent.REFLECTION:
        if payload.prompt_type is None:
            raise ValidationError("Reflection prompt type is required", invalid_fields=["prompt_type"])
        target = _REFLECTION_TRANSITIONS.get((payload.prompt_type, current))
        if target is None:
            raise _out_of_sequence(
                event, current, f"{payload.prompt_type.value} reflections are not accepted at this stage"
            )
        word_count = validate_reflection(payload.prompt_type, payload.content)
        new_status = target

    else:
        if payload.score is None:
            raise ValidationError("Score is required", invalid_fields=["score"])
        decision = evaluate_mastery(payload.score)
        if current not in MASTERY_SCORE_STATUSES:
            raise _out_of_sequence(event, current)
        # Terminal: a later failing score does not undo mastery
        new_status = ProgressStatus.MASTERED if current == ProgressStatus.MASTERED else decision.next_status

    return TransitionResult(
        event=event,
        previous=current,
        status=new_status,
        changed=new_status != current,
        completed=new_status == ProgressStatus.MASTERED and current != ProgressStatus.MASTERED,
        word_count=word_count,
        mastery=decision,
    )

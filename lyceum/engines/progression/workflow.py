"""
Learner-facing workflow helpers: which prompt comes next, how far along a
learner is, and what to tell them to do.
"""

from typing import Optional, Union

from lyceum.kernel.models.progress import ProgressStatus, PromptType

_PROMPT_FOR_STATUS = {
    ProgressStatus.READY: PromptType.PRE_LECTURE,
    ProgressStatus.WATCHED: PromptType.INITIAL,
    ProgressStatus.INITIAL_REFLECTION: PromptType.MASTERY,
    ProgressStatus.MASTERED: PromptType.DISCUSSION,
}

_COMPLETION = {
    ProgressStatus.LOCKED: 0,
    ProgressStatus.READY: 10,
    ProgressStatus.STARTED: 20,
    ProgressStatus.WATCHED: 40,
    ProgressStatus.INITIAL_REFLECTION: 60,
    ProgressStatus.MASTERY_TESTING: 80,
    ProgressStatus.MASTERED: 100,
}

_NEXT_ACTION = {
    ProgressStatus.LOCKED: "Complete the required prerequisite lectures",
    ProgressStatus.READY: "Write your pre-lecture reflection",
    ProgressStatus.STARTED: "Watch the lecture",
    ProgressStatus.WATCHED: "Write your initial reflection",
    ProgressStatus.INITIAL_REFLECTION: "Answer the mastery question",
    ProgressStatus.MASTERY_TESTING: "Wait for your mastery evaluation",
    ProgressStatus.MASTERED: "Join the discussion",
}

_STEP_DESCRIPTION = {
    ProgressStatus.LOCKED: "This lecture unlocks once its required prerequisites are mastered.",
    ProgressStatus.READY: "Set out what you already think about the topic before you begin.",
    ProgressStatus.STARTED: "The lecture is open. Watch it through to the end.",
    ProgressStatus.WATCHED: "Summarise the main argument in your own words.",
    ProgressStatus.INITIAL_REFLECTION: "Show that you can apply and critique the lecture's ideas.",
    ProgressStatus.MASTERY_TESTING: "Your mastery response is being evaluated. A score of 70 or more completes the lecture.",
    ProgressStatus.MASTERED: "You have mastered this lecture.",
}


class SimpleStatus:
    COMPLETED = "COMPLETED"
    IN_PROGRESS = "IN_PROGRESS"
    AVAILABLE = "AVAILABLE"
    LOCKED = "LOCKED"


def prompt_type_for_status(status: Union[ProgressStatus, str]) -> Optional[PromptType]:
    return _PROMPT_FOR_STATUS.get(ProgressStatus(status))


def completion_percentage(status: Union[ProgressStatus, str]) -> int:
    return _COMPLETION[ProgressStatus(status)]


def simplify_status(status: Union[ProgressStatus, str]) -> str:
    """Collapse the workflow into the four states a lecture list shows."""
    status = ProgressStatus(status)
    if status == ProgressStatus.MASTERED:
        return SimpleStatus.COMPLETED
    if status == ProgressStatus.LOCKED:
        return SimpleStatus.LOCKED
    if status == ProgressStatus.READY:
        return SimpleStatus.AVAILABLE
    return SimpleStatus.IN_PROGRESS


def next_action(status: Union[ProgressStatus, str]) -> str:
    return _NEXT_ACTION[ProgressStatus(status)]


def step_description(status: Union[ProgressStatus, str]) -> str:
    return _STEP_DESCRIPTION[ProgressStatus(status)]

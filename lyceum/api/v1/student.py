"""
Learner workflow endpoints.

Each action is one event on the progress state machine for the current user.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Request, status

from lyceum.api.deps import CurrentUser, DbSession, get_client_ip
from lyceum.engines.curriculum.prerequisite_service import (
    DEFAULT_SUGGESTION_LIMIT,
    LectureAvailability,
    PrerequisiteService,
)
from lyceum.engines.progression.progression_service import ProgressOutcome, ProgressionService
from lyceum.engines.progression.workflow import completion_percentage, simplify_status
from lyceum.orchestration.state_machine import ProgressEvent, TransitionPayload
from lyceum.schemas.lecture import AvailableLectureResponse, LectureSummary
from lyceum.schemas.progress import (
    MasteryResultResponse,
    MasteryScoreRequest,
    ProgressResponse,
    ProgressWithLecture,
    ReflectionCreate,
    ReflectionResponse,
    TransitionResponse,
)

router = APIRouter()

_MESSAGES = {
    ProgressEvent.START: ("Lecture started", "Lecture already started"),
    ProgressEvent.VIEWED: ("Lecture marked as watched", "View recorded"),
    ProgressEvent.REFLECTION: ("Reflection submitted", "Reflection submitted"),
}


def _message(outcome: ProgressOutcome) -> str:
    result = outcome.result
    if result.mastery is not None:
        if result.mastery.mastered:
            return "Mastery achieved"
        return "Mastery not yet achieved; revise your reflection and try again"
    changed, unchanged = _MESSAGES.get(result.event, ("Progress updated", "No change"))
    return changed if result.changed else unchanged


def _transition_response(lecture_id: uuid.UUID, outcome: ProgressOutcome) -> TransitionResponse:
    result = outcome.result
    return TransitionResponse(
        lecture_id=lecture_id,
        event=result.event.value,
        previous_status=result.previous,
        status=result.status,
        changed=result.changed,
        completed=result.completed,
        message=_message(outcome),
        progress=ProgressResponse.model_validate(outcome.progress),
        reflection=(
            ReflectionResponse.model_validate(outcome.reflection) if outcome.reflection else None
        ),
        mastery=(
            MasteryResultResponse(
                score=result.mastery.score,
                threshold=result.mastery.threshold,
                mastered=result.mastery.mastered,
            )
            if result.mastery
            else None
        ),
    )


def _availability_response(item: LectureAvailability) -> AvailableLectureResponse:
    return AvailableLectureResponse(
        lecture=LectureSummary.model_validate(item.lecture),
        status=item.status,
        simple_status=item.simple_status,
        readiness_score=item.readiness.score,
        prerequisites_satisfied=item.readiness.satisfied,
        prerequisites_count=item.prerequisites_count,
    )


@router.post("/lectures/{lecture_id}/start", response_model=TransitionResponse)
async def start_lecture(
    request: Request,
    lecture_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
):
    """Start a lecture. Refused (409) until every required prerequisite is mastered."""
    outcome = await ProgressionService(db).apply_event(
        user.id, lecture_id, ProgressEvent.START, ip_address=get_client_ip(request)
    )
    return _transition_response(lecture_id, outcome)


@router.post("/lectures/{lecture_id}/viewed", response_model=TransitionResponse)
async def mark_viewed(
    request: Request,
    lecture_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
):
    outcome = await ProgressionService(db).apply_event(
        user.id, lecture_id, ProgressEvent.VIEWED, ip_address=get_client_ip(request)
    )
    return _transition_response(lecture_id, outcome)


@router.post(
    "/lectures/{lecture_id}/reflections",
    response_model=TransitionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_reflection(
    request: Request,
    lecture_id: uuid.UUID,
    data: ReflectionCreate,
    user: CurrentUser,
    db: DbSession,
):
    """
    Submit a reflection.

    Minimum lengths: pre-lecture and initial 30 words, mastery 50 words.
    """
    outcome = await ProgressionService(db).apply_event(
        user.id,
        lecture_id,
        ProgressEvent.REFLECTION,
        TransitionPayload(prompt_type=data.prompt_type, content=data.content),
        ip_address=get_client_ip(request),
    )
    return _transition_response(lecture_id, outcome)


@router.post("/lectures/{lecture_id}/mastery", response_model=TransitionResponse)
async def submit_mastery_score(
    request: Request,
    lecture_id: uuid.UUID,
    data: MasteryScoreRequest,
    user: CurrentUser,
    db: DbSession,
):
    """Record an evaluation score; 70 or above masters the lecture."""
    outcome = await ProgressionService(db).apply_event(
        user.id,
        lecture_id,
        ProgressEvent.MASTERY_SCORE,
        TransitionPayload(score=data.score, ai_evaluation=data.ai_evaluation),
        ip_address=get_client_ip(request),
    )
    return _transition_response(lecture_id, outcome)


@router.get("/available-lectures", response_model=List[AvailableLectureResponse])
async def available_lectures(
    user: CurrentUser,
    db: DbSession,
    simple_status: Optional[str] = None,
):
    """Every lecture with the current user's status and readiness."""
    items = await PrerequisiteService(db).available_lectures(user.id)
    if simple_status:
        items = [item for item in items if item.simple_status == simple_status.upper()]
    return [_availability_response(item) for item in items]


@router.get("/suggested-lectures", response_model=List[AvailableLectureResponse])
async def suggested_lectures(
    user: CurrentUser,
    db: DbSession,
    limit: int = DEFAULT_SUGGESTION_LIMIT,
):
    items = await PrerequisiteService(db).suggest_next_lectures(user.id, limit=max(1, min(limit, 50)))
    return [_availability_response(item) for item in items]


@router.get("/progress", response_model=List[ProgressWithLecture])
async def my_progress(user: CurrentUser, db: DbSession):
    rows = await ProgressionService(db).list_user_progress(user.id)
    return [
        ProgressWithLecture(
            progress=ProgressResponse.model_validate(progress),
            lecture=LectureSummary.model_validate(lecture),
            completion_percentage=completion_percentage(progress.status),
            simple_status=simplify_status(progress.status),
        )
        for progress, lecture in rows
    ]

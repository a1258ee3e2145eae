"""
Progress, reflection and readiness schemas.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from lyceum.engines.progression.readiness import Readiness
from lyceum.kernel.models.progress import ProgressStatus, PromptType, ReflectionStatus
from lyceum.schemas.lecture import LectureSummary


class ProgressResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    lecture_id: uuid.UUID
    status: ProgressStatus
    last_viewed: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    decay_factor: float = 1.0
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProgressWithLecture(BaseModel):
    progress: ProgressResponse
    lecture: LectureSummary
    completion_percentage: int
    simple_status: str


class ProgressCreate(BaseModel):
    status: ProgressStatus = ProgressStatus.LOCKED


class ProgressStatusUpdate(BaseModel):
    status: ProgressStatus


class ReflectionCreate(BaseModel):
    """Reflection submission; the word minimum depends on ``prompt_type``."""

    prompt_type: PromptType
    content: str = Field(..., min_length=1)


class ReflectionUpdate(BaseModel):
    content: Optional[str] = Field(None, min_length=1)
    ai_evaluation: Optional[Dict[str, Any]] = None


class ReflectionResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    lecture_id: uuid.UUID
    prompt_type: PromptType
    content: str
    word_count: int
    ai_evaluation: Optional[Dict[str, Any]] = None
    status: ReflectionStatus
    score: Optional[float] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MasteryScoreRequest(BaseModel):
    """Score from the reflection evaluator, 0 to 100."""

    # Range and type are checked by the mastery gate so callers get its error shape
    score: Any
    ai_evaluation: Optional[Dict[str, Any]] = None


class MasteryResultResponse(BaseModel):
    score: float
    threshold: int
    mastered: bool


class TransitionResponse(BaseModel):
    """Outcome of a workflow event."""

    lecture_id: uuid.UUID
    event: str
    previous_status: ProgressStatus
    status: ProgressStatus
    changed: bool
    completed: bool = False
    message: str
    progress: ProgressResponse
    reflection: Optional[ReflectionResponse] = None
    mastery: Optional[MasteryResultResponse] = None


class PrerequisiteStateResponse(BaseModel):
    lecture_id: Optional[uuid.UUID] = None
    title: Optional[str] = None
    required: bool
    importance: int
    satisfied: bool


class ReadinessResponse(BaseModel):
    lecture_id: uuid.UUID
    score: int
    satisfied: bool
    meets_threshold: bool
    threshold: int
    required_total: int
    required_met: int
    recommended_total: int
    recommended_met: int
    missing_required: List[uuid.UUID] = []
    prerequisites: List[PrerequisiteStateResponse] = []


class CompletionStatusResponse(BaseModel):
    lecture_id: uuid.UUID
    user_id: uuid.UUID
    status: ProgressStatus
    simple_status: str
    completion_percentage: int
    next_prompt_type: Optional[PromptType] = None
    next_action: str
    step_description: str
    reflection_counts: Dict[str, int] = {}
    mastery_score: Optional[float] = None
    time_spent_seconds: int = 0
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


def readiness_response(lecture_id: uuid.UUID, readiness: Readiness) -> ReadinessResponse:
    return ReadinessResponse(
        lecture_id=lecture_id,
        prerequisites=[
            PrerequisiteStateResponse(**p.model_dump()) for p in readiness.prerequisites
        ],
        **readiness.model_dump(exclude={"prerequisites"}),
    )

"""
Lecture, prerequisite and lecture-entity link schemas.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from lyceum.kernel.models.lecture import ContentType
from lyceum.kernel.models.philosophy import LectureEntityRelationType
from lyceum.kernel.models.progress import ProgressStatus


class LectureCreate(BaseModel):
    """Lecture creation request. ``order`` defaults to the end of the category."""

    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field(..., min_length=1)
    content_url: str = Field(..., min_length=1, max_length=1000)
    lecturer_name: str = Field(..., min_length=1, max_length=255)
    category: str = Field(..., min_length=1, max_length=100)
    content_type: ContentType = ContentType.VIDEO
    order: Optional[int] = Field(None, ge=0)
    embed_allowed: bool = True
    source_attribution: Optional[str] = None
    pre_lecture_prompt: Optional[str] = None
    initial_prompt: Optional[str] = None
    mastery_prompt: Optional[str] = None
    evaluation_prompt: Optional[str] = None
    discussion_prompts: Optional[List[str]] = None


class LectureUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = Field(None, min_length=1)
    content_url: Optional[str] = Field(None, min_length=1, max_length=1000)
    lecturer_name: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    content_type: Optional[ContentType] = None
    order: Optional[int] = Field(None, ge=0)
    embed_allowed: Optional[bool] = None
    source_attribution: Optional[str] = None
    pre_lecture_prompt: Optional[str] = None
    initial_prompt: Optional[str] = None
    mastery_prompt: Optional[str] = None
    evaluation_prompt: Optional[str] = None
    discussion_prompts: Optional[List[str]] = None


class LectureResponse(BaseModel):
    id: uuid.UUID
    title: str
    description: str
    content_url: str
    lecturer_name: str
    content_type: ContentType
    category: str
    order: int
    embed_allowed: bool
    source_attribution: Optional[str] = None
    pre_lecture_prompt: Optional[str] = None
    initial_prompt: Optional[str] = None
    mastery_prompt: Optional[str] = None
    evaluation_prompt: Optional[str] = None
    discussion_prompts: Optional[List[str]] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class LectureSummary(BaseModel):
    """Compact lecture reference used inside other responses."""

    id: uuid.UUID
    title: str
    category: str
    order: int
    lecturer_name: str

    class Config:
        from_attributes = True


class PrerequisiteCreate(BaseModel):
    prerequisite_lecture_id: uuid.UUID
    is_required: bool = True
    importance_level: int = Field(3, ge=1, le=5)


class PrerequisiteUpdate(BaseModel):
    is_required: Optional[bool] = None
    importance_level: Optional[int] = Field(None, ge=1, le=5)


class PrerequisiteResponse(BaseModel):
    id: uuid.UUID
    lecture_id: uuid.UUID
    prerequisite_lecture_id: uuid.UUID
    prerequisite_title: Optional[str] = None
    is_required: bool
    importance_level: int


class PrerequisiteCheckItem(BaseModel):
    lecture_id: uuid.UUID
    title: Optional[str] = None
    is_required: bool
    importance_level: int
    completed: bool


class PrerequisiteCheckResponse(BaseModel):
    """Whether the current user may start a lecture."""

    lecture_id: uuid.UUID
    can_start: bool
    readiness_score: int
    meets_threshold: bool
    missing_required: List[uuid.UUID] = []
    prerequisites: List[PrerequisiteCheckItem] = []


class LectureEntityLinkCreate(BaseModel):
    entity_id: uuid.UUID
    # Accepts any casing; validated by the service
    relation_type: Optional[str] = None


class LectureEntityLinkUpdate(BaseModel):
    relation_type: str


class LectureEntityLinkResponse(BaseModel):
    id: uuid.UUID
    lecture_id: uuid.UUID
    entity_id: uuid.UUID
    entity_name: Optional[str] = None
    entity_type: Optional[str] = None
    relation_type: LectureEntityRelationType


class AvailableLectureResponse(BaseModel):
    """A lecture as seen by one learner."""

    lecture: LectureSummary
    status: ProgressStatus
    simple_status: str
    readiness_score: int
    prerequisites_satisfied: bool
    prerequisites_count: int

"""
Reflection endpoints. Submission goes through the student workflow; these
read and edit what was submitted.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Request

from lyceum.api.deps import CurrentUser, DbSession, get_client_ip
from lyceum.engines.progression.progression_service import ProgressionService
from lyceum.kernel.models.progress import PromptType
from lyceum.schemas.progress import ReflectionResponse, ReflectionUpdate

router = APIRouter()


@router.get("", response_model=List[ReflectionResponse])
async def list_my_reflections(
    user: CurrentUser,
    db: DbSession,
    lecture_id: Optional[uuid.UUID] = None,
    prompt_type: Optional[PromptType] = None,
):
    reflections = await ProgressionService(db).list_reflections(
        user.id, lecture_id=lecture_id, prompt_type=prompt_type
    )
    return [ReflectionResponse.model_validate(r) for r in reflections]


@router.get("/{reflection_id}", response_model=ReflectionResponse)
async def get_reflection(reflection_id: uuid.UUID, user: CurrentUser, db: DbSession):
    reflection = await ProgressionService(db).get_reflection(reflection_id, viewer=user)
    return ReflectionResponse.model_validate(reflection)


@router.patch("/{reflection_id}", response_model=ReflectionResponse)
async def update_reflection(
    request: Request,
    reflection_id: uuid.UUID,
    data: ReflectionUpdate,
    user: CurrentUser,
    db: DbSession,
):
    """Edit a reflection (author or admin). The word minimum still applies."""
    reflection = await ProgressionService(db).update_reflection(
        reflection_id,
        viewer=user,
        content=data.content,
        ai_evaluation=data.ai_evaluation,
        ip_address=get_client_ip(request),
    )
    return ReflectionResponse.model_validate(reflection)

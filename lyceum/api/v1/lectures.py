"""
Lecture catalogue endpoints: lectures, prerequisites, entity links and
per-learner progress on a single lecture.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Request, status

from lyceum.api.deps import (
    CurrentUser,
    DbSession,
    Pagination,
    StaffUser,
    get_client_ip,
    resolve_learner,
)
from lyceum.errors import ForbiddenError
from lyceum.engines.curriculum.lecture_entity_service import LectureEntityService
from lyceum.engines.curriculum.lecture_service import LectureService
from lyceum.engines.curriculum.prerequisite_service import PrerequisiteService
from lyceum.engines.progression.progression_service import ProgressionService
from lyceum.kernel.events.event_store import EventStore
from lyceum.kernel.models.base import enum_value
from lyceum.kernel.models.lecture import ContentType
from lyceum.kernel.models.progress import ProgressStatus
from lyceum.schemas.common import EventLogResponse, PaginatedResponse, SuccessResponse
from lyceum.schemas.lecture import (
    LectureCreate,
    LectureEntityLinkCreate,
    LectureEntityLinkResponse,
    LectureEntityLinkUpdate,
    LectureResponse,
    LectureSummary,
    LectureUpdate,
    PrerequisiteCheckItem,
    PrerequisiteCheckResponse,
    PrerequisiteCreate,
    PrerequisiteResponse,
    PrerequisiteUpdate,
)
from lyceum.schemas.progress import (
    CompletionStatusResponse,
    ProgressCreate,
    ProgressResponse,
    ProgressStatusUpdate,
    ReadinessResponse,
    readiness_response,
)

router = APIRouter()


# Lectures

@router.get("", response_model=PaginatedResponse[LectureResponse])
async def list_lectures(
    user: CurrentUser,
    db: DbSession,
    paging: Pagination,
    category: Optional[str] = None,
    lecturer_name: Optional[str] = None,
    content_type: Optional[ContentType] = None,
    search: Optional[str] = None,
):
    page, page_size = paging
    items, total = await LectureService(db).list_lectures(
        category=category,
        lecturer_name=lecturer_name,
        content_type=content_type.value if content_type else None,
        search=search,
        page=page,
        page_size=page_size,
    )
    return PaginatedResponse.build(
        items=[LectureResponse.model_validate(lecture) for lecture in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("", response_model=LectureResponse, status_code=status.HTTP_201_CREATED)
async def create_lecture(
    request: Request,
    data: LectureCreate,
    user: StaffUser,
    db: DbSession,
):
    lecture = await LectureService(db).create_lecture(
        data.model_dump(),
        actor_id=user.id,
        ip_address=get_client_ip(request),
    )
    return LectureResponse.model_validate(lecture)


@router.get("/{lecture_id}", response_model=LectureResponse)
async def get_lecture(lecture_id: uuid.UUID, user: CurrentUser, db: DbSession):
    return LectureResponse.model_validate(await LectureService(db).get_lecture(lecture_id))


@router.patch("/{lecture_id}", response_model=LectureResponse)
async def update_lecture(
    request: Request,
    lecture_id: uuid.UUID,
    data: LectureUpdate,
    user: StaffUser,
    db: DbSession,
):
    lecture = await LectureService(db).update_lecture(
        lecture_id,
        data.model_dump(exclude_unset=True),
        actor_id=user.id,
        ip_address=get_client_ip(request),
    )
    return LectureResponse.model_validate(lecture)


@router.delete("/{lecture_id}", response_model=SuccessResponse)
async def delete_lecture(
    request: Request,
    lecture_id: uuid.UUID,
    user: StaffUser,
    db: DbSession,
):
    """
    Delete a lecture with its progress, reflections and links.

    Refused while another lecture lists it as a prerequisite.
    """
    await LectureService(db).delete_lecture(
        lecture_id, actor_id=user.id, ip_address=get_client_ip(request)
    )
    return SuccessResponse(message="Lecture deleted")


@router.get("/{lecture_id}/history", response_model=List[EventLogResponse])
async def lecture_history(
    lecture_id: uuid.UUID,
    user: StaffUser,
    db: DbSession,
    limit: int = 100,
):
    """Audit trail of catalogue changes to a lecture."""
    events = await EventStore(db).get_entity_history("lecture", lecture_id, limit=min(limit, 500))
    return [EventLogResponse.model_validate(event) for event in events]


# Prerequisites

@router.get("/{lecture_id}/prerequisites", response_model=List[PrerequisiteResponse])
async def list_prerequisites(lecture_id: uuid.UUID, user: CurrentUser, db: DbSession):
    rows = await PrerequisiteService(db).list_prerequisites(lecture_id)
    return [
        PrerequisiteResponse(
            id=edge.id,
            lecture_id=edge.lecture_id,
            prerequisite_lecture_id=edge.prerequisite_lecture_id,
            prerequisite_title=prerequisite.title,
            is_required=edge.is_required,
            importance_level=edge.importance_level,
        )
        for edge, prerequisite in rows
    ]


@router.post(
    "/{lecture_id}/prerequisites",
    response_model=PrerequisiteResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_prerequisite(
    request: Request,
    lecture_id: uuid.UUID,
    data: PrerequisiteCreate,
    user: StaffUser,
    db: DbSession,
):
    edge = await PrerequisiteService(db).add_prerequisite(
        lecture_id,
        data.prerequisite_lecture_id,
        is_required=data.is_required,
        importance_level=data.importance_level,
        actor_id=user.id,
        ip_address=get_client_ip(request),
    )
    return PrerequisiteResponse(
        id=edge.id,
        lecture_id=edge.lecture_id,
        prerequisite_lecture_id=edge.prerequisite_lecture_id,
        is_required=edge.is_required,
        importance_level=edge.importance_level,
    )


@router.get("/{lecture_id}/prerequisites/check", response_model=PrerequisiteCheckResponse)
async def check_prerequisites(lecture_id: uuid.UUID, user: CurrentUser, db: DbSession):
    """Can the current user start this lecture?"""
    readiness = await ProgressionService(db).get_readiness(user.id, lecture_id)
    return PrerequisiteCheckResponse(
        lecture_id=lecture_id,
        can_start=readiness.satisfied,
        readiness_score=readiness.score,
        meets_threshold=readiness.meets_threshold,
        missing_required=readiness.missing_required,
        prerequisites=[
            PrerequisiteCheckItem(
                lecture_id=p.lecture_id,
                title=p.title,
                is_required=p.required,
                importance_level=p.importance,
                completed=p.satisfied,
            )
            for p in readiness.prerequisites
        ],
    )


@router.patch(
    "/{lecture_id}/prerequisites/{prerequisite_id}",
    response_model=PrerequisiteResponse,
)
async def update_prerequisite(
    request: Request,
    lecture_id: uuid.UUID,
    prerequisite_id: uuid.UUID,
    data: PrerequisiteUpdate,
    user: StaffUser,
    db: DbSession,
):
    edge = await PrerequisiteService(db).update_prerequisite(
        lecture_id,
        prerequisite_id,
        is_required=data.is_required,
        importance_level=data.importance_level,
        actor_id=user.id,
        ip_address=get_client_ip(request),
    )
    return PrerequisiteResponse(
        id=edge.id,
        lecture_id=edge.lecture_id,
        prerequisite_lecture_id=edge.prerequisite_lecture_id,
        is_required=edge.is_required,
        importance_level=edge.importance_level,
    )


@router.delete("/{lecture_id}/prerequisites/{prerequisite_id}", response_model=SuccessResponse)
async def remove_prerequisite(
    request: Request,
    lecture_id: uuid.UUID,
    prerequisite_id: uuid.UUID,
    user: StaffUser,
    db: DbSession,
):
    await PrerequisiteService(db).remove_prerequisite(
        lecture_id, prerequisite_id, actor_id=user.id, ip_address=get_client_ip(request)
    )
    return SuccessResponse(message="Prerequisite removed")


@router.get("/{lecture_id}/required-by", response_model=List[LectureSummary])
async def lectures_requiring(lecture_id: uuid.UUID, user: CurrentUser, db: DbSession):
    """Lectures that list this one as a prerequisite."""
    lectures = await PrerequisiteService(db).lectures_requiring(lecture_id)
    return [LectureSummary.model_validate(lecture) for lecture in lectures]


@router.get("/{lecture_id}/readiness", response_model=ReadinessResponse)
async def get_readiness(
    lecture_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
    user_id: Optional[uuid.UUID] = None,
):
    learner_id = resolve_learner(user, user_id)
    readiness = await ProgressionService(db).get_readiness(learner_id, lecture_id)
    return readiness_response(lecture_id, readiness)


# Entity links

@router.get("/{lecture_id}/entity-relations", response_model=List[LectureEntityLinkResponse])
async def list_entity_links(lecture_id: uuid.UUID, user: CurrentUser, db: DbSession):
    rows = await LectureEntityService(db).list_links(lecture_id)
    return [
        LectureEntityLinkResponse(
            id=link.id,
            lecture_id=link.lecture_id,
            entity_id=link.entity_id,
            entity_name=entity.name,
            entity_type=enum_value(entity.type),
            relation_type=link.relation_type,
        )
        for link, entity in rows
    ]


@router.post(
    "/{lecture_id}/entity-relations",
    response_model=LectureEntityLinkResponse,
    status_code=status.HTTP_201_CREATED,
)
async def link_entity(
    request: Request,
    lecture_id: uuid.UUID,
    data: LectureEntityLinkCreate,
    user: StaffUser,
    db: DbSession,
):
    link = await LectureEntityService(db).link_entity(
        lecture_id,
        data.entity_id,
        relation_type=data.relation_type,
        actor_id=user.id,
        ip_address=get_client_ip(request),
    )
    return LectureEntityLinkResponse(
        id=link.id,
        lecture_id=link.lecture_id,
        entity_id=link.entity_id,
        relation_type=link.relation_type,
    )


@router.patch(
    "/{lecture_id}/entity-relations/{link_id}",
    response_model=LectureEntityLinkResponse,
)
async def update_entity_link(
    request: Request,
    lecture_id: uuid.UUID,
    link_id: uuid.UUID,
    data: LectureEntityLinkUpdate,
    user: StaffUser,
    db: DbSession,
):
    link = await LectureEntityService(db).update_link(
        lecture_id,
        link_id,
        data.relation_type,
        actor_id=user.id,
        ip_address=get_client_ip(request),
    )
    return LectureEntityLinkResponse(
        id=link.id,
        lecture_id=link.lecture_id,
        entity_id=link.entity_id,
        relation_type=link.relation_type,
    )


@router.delete("/{lecture_id}/entity-relations/{link_id}", response_model=SuccessResponse)
async def unlink_entity(
    request: Request,
    lecture_id: uuid.UUID,
    link_id: uuid.UUID,
    user: StaffUser,
    db: DbSession,
):
    await LectureEntityService(db).unlink(
        lecture_id, link_id, actor_id=user.id, ip_address=get_client_ip(request)
    )
    return SuccessResponse(message="Entity unlinked")


# Progress on this lecture

@router.get("/{lecture_id}/progress", response_model=Optional[ProgressResponse])
async def get_progress(
    lecture_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
    user_id: Optional[uuid.UUID] = None,
):
    """The learner's progress record, or null if they never opened the lecture."""
    learner_id = resolve_learner(user, user_id)
    service = ProgressionService(db)
    await service.get_lecture(lecture_id)
    progress = await service.get_progress(learner_id, lecture_id)
    return ProgressResponse.model_validate(progress) if progress else None


@router.post(
    "/{lecture_id}/progress",
    response_model=ProgressResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_progress(
    lecture_id: uuid.UUID,
    data: ProgressCreate,
    user: CurrentUser,
    db: DbSession,
    user_id: Optional[uuid.UUID] = None,
):
    learner_id = resolve_learner(user, user_id)
    if data.status != ProgressStatus.LOCKED and not user.is_staff:
        raise ForbiddenError("Only staff may create progress beyond LOCKED")
    progress = await ProgressionService(db).create_progress(
        learner_id, lecture_id, status=data.status, actor_id=user.id
    )
    return ProgressResponse.model_validate(progress)


@router.patch("/{lecture_id}/progress", response_model=ProgressResponse)
async def update_progress_status(
    request: Request,
    lecture_id: uuid.UUID,
    data: ProgressStatusUpdate,
    user: StaffUser,
    db: DbSession,
    user_id: Optional[uuid.UUID] = None,
):
    """Move a learner one step along the workflow (staff tool)."""
    learner_id = user_id or user.id
    progress = await ProgressionService(db).set_status(
        learner_id,
        lecture_id,
        data.status,
        actor_id=user.id,
        ip_address=get_client_ip(request),
    )
    return ProgressResponse.model_validate(progress)


@router.get("/{lecture_id}/completion-status", response_model=CompletionStatusResponse)
async def completion_status(
    lecture_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
    user_id: Optional[uuid.UUID] = None,
):
    summary = await ProgressionService(db).completion_status(
        user_id or user.id, lecture_id, viewer=user
    )
    return CompletionStatusResponse.model_validate(summary)

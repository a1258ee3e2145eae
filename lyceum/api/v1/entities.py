"""
Philosophical entity endpoints.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Request, status

from lyceum.api.deps import CurrentUser, DbSession, Pagination, StaffUser, get_client_ip
from lyceum.engines.curriculum.entity_service import EntityService
from lyceum.kernel.models.philosophy import EntityType
from lyceum.schemas.common import PaginatedResponse, SuccessResponse
from lyceum.schemas.philosophy import (
    EntityCreate,
    EntityRelationshipsResponse,
    EntityResponse,
    EntitySummary,
    EntityUpdate,
    LearningPathResponse,
    RelationResponse,
)

router = APIRouter()


@router.get("", response_model=PaginatedResponse[EntityResponse])
async def list_entities(
    user: CurrentUser,
    db: DbSession,
    paging: Pagination,
    type: Optional[EntityType] = None,
    search: Optional[str] = None,
):
    page, page_size = paging
    items, total = await EntityService(db).list_entities(
        entity_type=type.value if type else None,
        search=search,
        page=page,
        page_size=page_size,
    )
    return PaginatedResponse.build(
        items=[EntityResponse.model_validate(e) for e in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("", response_model=EntityResponse, status_code=status.HTTP_201_CREATED)
async def create_entity(
    request: Request,
    data: EntityCreate,
    user: StaffUser,
    db: DbSession,
):
    entity = await EntityService(db).create_entity(
        data.model_dump(exclude_none=True),
        actor_id=user.id,
        ip_address=get_client_ip(request),
    )
    return EntityResponse.model_validate(entity)


@router.get("/{entity_id}", response_model=EntityResponse)
async def get_entity(entity_id: uuid.UUID, user: CurrentUser, db: DbSession):
    return EntityResponse.model_validate(await EntityService(db).get_entity(entity_id))


@router.patch("/{entity_id}", response_model=EntityResponse)
async def update_entity(
    request: Request,
    entity_id: uuid.UUID,
    data: EntityUpdate,
    user: StaffUser,
    db: DbSession,
):
    entity = await EntityService(db).update_entity(
        entity_id,
        data.model_dump(exclude_unset=True),
        actor_id=user.id,
        ip_address=get_client_ip(request),
    )
    return EntityResponse.model_validate(entity)


@router.delete("/{entity_id}", response_model=SuccessResponse)
async def delete_entity(
    request: Request,
    entity_id: uuid.UUID,
    user: StaffUser,
    db: DbSession,
):
    """Delete an entity along with its relations and lecture links."""
    await EntityService(db).delete_entity(
        entity_id, actor_id=user.id, ip_address=get_client_ip(request)
    )
    return SuccessResponse(message="Entity deleted")


@router.get("/{entity_id}/relationships", response_model=EntityRelationshipsResponse)
async def entity_relationships(entity_id: uuid.UUID, user: CurrentUser, db: DbSession):
    service = EntityService(db)
    entity = await service.get_entity(entity_id)
    relations = await service.relationships(entity_id)
    return EntityRelationshipsResponse(
        entity=EntitySummary.model_validate(entity),
        outgoing=[
            RelationResponse.model_validate(r) for r in relations if r.source_entity_id == entity_id
        ],
        incoming=[
            RelationResponse.model_validate(r) for r in relations if r.target_entity_id == entity_id
        ],
    )


@router.get("/{entity_id}/prerequisites", response_model=List[EntitySummary])
async def entity_prerequisites(entity_id: uuid.UUID, user: CurrentUser, db: DbSession):
    """Entities to study directly before this one."""
    entities = await EntityService(db).prerequisites(entity_id)
    return [EntitySummary.model_validate(e) for e in entities]


@router.get("/{entity_id}/learning-path", response_model=LearningPathResponse)
async def learning_path(entity_id: uuid.UUID, user: CurrentUser, db: DbSession):
    service = EntityService(db)
    entity = await service.get_entity(entity_id)
    path = await service.learning_path(entity_id)
    return LearningPathResponse(
        entity=EntitySummary.model_validate(entity),
        path=[EntitySummary.model_validate(e) for e in path],
    )

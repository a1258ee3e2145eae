"""
Philosophical relationship endpoints.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Request, status

from lyceum.api.deps import CurrentUser, DbSession, Pagination, StaffUser, get_client_ip
from lyceum.engines.curriculum.relation_service import RelationService
from lyceum.schemas.common import PaginatedResponse, SuccessResponse
from lyceum.schemas.philosophy import RelationCreate, RelationResponse, RelationUpdate

router = APIRouter()


@router.get("", response_model=PaginatedResponse[RelationResponse])
async def list_relations(
    user: CurrentUser,
    db: DbSession,
    paging: Pagination,
    entity_id: Optional[uuid.UUID] = None,
    relation_type: Optional[str] = None,
):
    page, page_size = paging
    items, total = await RelationService(db).list_relations(
        entity_id=entity_id,
        relation_type=relation_type,
        page=page,
        page_size=page_size,
    )
    return PaginatedResponse.build(
        items=[RelationResponse.model_validate(r) for r in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("", response_model=RelationResponse, status_code=status.HTTP_201_CREATED)
async def create_relation(
    request: Request,
    data: RelationCreate,
    user: StaffUser,
    db: DbSession,
):
    """
    Relate two entities.

    Every validation problem is reported at once in a single 400 response.
    """
    relation = await RelationService(db).create_relation(
        data.source_entity_id,
        data.target_entity_id,
        data.relation_types,
        description=data.description,
        importance=data.importance,
        actor_id=user.id,
        ip_address=get_client_ip(request),
    )
    return RelationResponse.model_validate(relation)


@router.get("/{relation_id}", response_model=RelationResponse)
async def get_relation(relation_id: uuid.UUID, user: CurrentUser, db: DbSession):
    return RelationResponse.model_validate(await RelationService(db).get_relation(relation_id))


@router.patch("/{relation_id}", response_model=RelationResponse)
async def update_relation(
    request: Request,
    relation_id: uuid.UUID,
    data: RelationUpdate,
    user: StaffUser,
    db: DbSession,
):
    relation = await RelationService(db).update_relation(
        relation_id,
        relation_types=data.relation_types,
        description=data.description,
        importance=data.importance,
        actor_id=user.id,
        ip_address=get_client_ip(request),
    )
    return RelationResponse.model_validate(relation)


@router.delete("/{relation_id}", response_model=SuccessResponse)
async def delete_relation(
    request: Request,
    relation_id: uuid.UUID,
    user: StaffUser,
    db: DbSession,
):
    await RelationService(db).delete_relation(
        relation_id, actor_id=user.id, ip_address=get_client_ip(request)
    )
    return SuccessResponse(message="Relationship deleted")

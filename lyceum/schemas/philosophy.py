"""
Philosophical entity and relation schemas.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from lyceum.kernel.models.philosophy import EntityType


class EntityBase(BaseModel):
    description: Optional[str] = None
    start_year: Optional[int] = None
    end_year: Optional[int] = None
    birthplace: Optional[str] = None
    nationality: Optional[str] = None
    biography: Optional[str] = None
    ontological_position: Optional[str] = None
    primary_text: Optional[str] = None
    key_terms: Optional[List[str]] = None
    central_question: Optional[str] = None
    still_relevant: Optional[bool] = None
    scope: Optional[str] = None
    geographical_focus: Optional[str] = None
    historical_context: Optional[str] = None
    lecture_id: Optional[uuid.UUID] = None


class EntityCreate(EntityBase):
    """Entity creation request. Years are integers; negative means BCE."""

    type: EntityType
    name: str = Field(..., min_length=1, max_length=255)


class EntityUpdate(EntityBase):
    type: Optional[EntityType] = None
    name: Optional[str] = Field(None, min_length=1, max_length=255)


class EntityResponse(EntityBase):
    id: uuid.UUID
    type: EntityType
    name: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class EntitySummary(BaseModel):
    id: uuid.UUID
    type: EntityType
    name: str

    class Config:
        from_attributes = True


class RelationCreate(BaseModel):
    source_entity_id: uuid.UUID
    target_entity_id: uuid.UUID
    # Checked against the known set by the service so all problems are reported together
    relation_types: List[str]
    description: Optional[str] = None
    importance: int = Field(3, ge=1, le=5)


class RelationUpdate(BaseModel):
    relation_types: Optional[List[str]] = None
    description: Optional[str] = None
    importance: Optional[int] = Field(None, ge=1, le=5)


class RelationResponse(BaseModel):
    id: uuid.UUID
    source_entity_id: uuid.UUID
    target_entity_id: uuid.UUID
    relation_types: List[str]
    description: Optional[str] = None
    importance: int
    created_at: datetime

    class Config:
        from_attributes = True


class EntityRelationshipsResponse(BaseModel):
    entity: EntitySummary
    outgoing: List[RelationResponse] = []
    incoming: List[RelationResponse] = []


class LearningPathResponse(BaseModel):
    """Entities to study in order; the requested entity comes last."""

    entity: EntitySummary
    path: List[EntitySummary]

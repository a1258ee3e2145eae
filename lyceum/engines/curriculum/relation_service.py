"""
Typed relations between philosophical entities.
"""

import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from lyceum.errors import NotFoundError, ValidationError
from lyceum.engines.progression.readiness import validate_importance
from lyceum.kernel.events.event_store import EventStore
from lyceum.kernel.models.base import enum_value
from lyceum.kernel.models.event_log import EventType
from lyceum.kernel.models.philosophy import (
    EntityType,
    PhilosophicalEntity,
    PhilosophicalRelation,
    RelationType,
)
from lyceum.logging_config import get_logger

logger = get_logger(__name__)

KNOWN_RELATION_TYPES = frozenset(t.value for t in RelationType)
DEVELOPMENT_SOURCE_TYPES = frozenset({EntityType.PHILOSOPHER.value, EntityType.CONCEPT.value})


def normalize_relation_types(relation_types: Optional[Sequence[Any]]) -> List[str]:
    """Upper-case, de-duplicated, in the order given."""
    seen: List[str] = []
    for item in relation_types or []:
        value = str(enum_value(item)).strip().upper()
        if value and value not in seen:
            seen.append(value)
    return seen


class RelationService:
    """Create, query, edit and remove entity relations."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.event_store = EventStore(session)

    async def validate_relation(
        self,
        source_id: Optional[uuid.UUID],
        target_id: Optional[uuid.UUID],
        relation_types: Sequence[str],
    ) -> Tuple[PhilosophicalEntity, PhilosophicalEntity]:
        """
        Check a relation before it is written.

        Every problem is collected, then raised together as one
        ValidationError whose message lists them all.
        """
        errors: List[str] = []
        fields: List[str] = []

        if not relation_types:
            errors.append("At least one relation type is required")
            fields.append("relation_types")
        unknown = [t for t in relation_types if t not in KNOWN_RELATION_TYPES]
        if unknown:
            errors.append(f"Unknown relation types: {', '.join(unknown)}")
            fields.append("relation_types")

        source = await self.session.get(PhilosophicalEntity, source_id) if source_id else None
        target = await self.session.get(PhilosophicalEntity, target_id) if target_id else None
        if source is None:
            errors.append("Source entity does not exist")
            fields.append("source_entity_id")
        if target is None:
            errors.append("Target entity does not exist")
            fields.append("target_entity_id")
        if source_id is not None and source_id == target_id:
            errors.append("An entity cannot be related to itself")
            fields.append("target_entity_id")

        if (
            RelationType.ADDRESSES_PROBLEMATIC.value in relation_types
            and target is not None
            and enum_value(target.type) != EntityType.PROBLEMATIC.value
        ):
            errors.append("ADDRESSES_PROBLEMATIC requires a Problematic target")
            fields.append("target_entity_id")
        if (
            RelationType.DEVELOPMENT.value in relation_types
            and source is not None
            and enum_value(source.type) not in DEVELOPMENT_SOURCE_TYPES
        ):
            errors.append("DEVELOPMENT requires a Philosopher or PhilosophicalConcept source")
            fields.append("source_entity_id")

        if errors:
            raise ValidationError("; ".join(errors), invalid_fields=sorted(set(fields)))
        return source, target

    async def create_relation(
        self,
        source_id: uuid.UUID,
        target_id: uuid.UUID,
        relation_types: Sequence[Any],
        description: Optional[str] = None,
        importance: int = 3,
        actor_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> PhilosophicalRelation:
        types = normalize_relation_types(relation_types)
        validate_importance(importance, field_name="importance")
        await self.validate_relation(source_id, target_id, types)

        relation = PhilosophicalRelation(
            source_entity_id=source_id,
            target_entity_id=target_id,
            relation_types=types,
            description=description,
            importance=importance,
        )
        self.session.add(relation)
        await self.session.flush()

        await self.event_store.log(
            event_type=EventType.RELATION_CREATED,
            entity_type="philosophical_relation",
            entity_id=relation.id,
            user_id=actor_id,
            payload={"source": source_id, "target": target_id, "relation_types": types},
            ip_address=ip_address,
        )
        logger.info(
            "Relation created",
            extra={"relation_id": str(relation.id), "relation_types": types},
        )
        return relation

    async def get_relation(self, relation_id: uuid.UUID) -> PhilosophicalRelation:
        relation = await self.session.get(PhilosophicalRelation, relation_id)
        if relation is None:
            raise NotFoundError("Philosophical relation", relation_id)
        return relation

    async def list_relations(
        self,
        entity_id: Optional[uuid.UUID] = None,
        relation_type: Optional[str] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> Tuple[List[PhilosophicalRelation], int]:
        query = select(PhilosophicalRelation)
        if entity_id is not None:
            query = query.where(
                or_(
                    PhilosophicalRelation.source_entity_id == entity_id,
                    PhilosophicalRelation.target_entity_id == entity_id,
                )
            )
        query = query.order_by(
            PhilosophicalRelation.importance.desc(),
            PhilosophicalRelation.created_at,
        )

        if relation_type:
            # JSON list membership is checked in Python to stay portable across dialects
            wanted = relation_type.strip().upper()
            rows = [
                r for r in (await self.session.execute(query)).scalars().all()
                if wanted in (r.relation_types or [])
            ]
            start = (page - 1) * page_size
            return rows[start:start + page_size], len(rows)

        total = (
            await self.session.execute(select(func.count()).select_from(query.subquery()))
        ).scalar() or 0
        result = await self.session.execute(
            query.offset((page - 1) * page_size).limit(page_size)
        )
        return list(result.scalars().all()), total

    async def update_relation(
        self,
        relation_id: uuid.UUID,
        relation_types: Optional[Sequence[Any]] = None,
        description: Optional[str] = None,
        importance: Optional[int] = None,
        actor_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> PhilosophicalRelation:
        relation = await self.get_relation(relation_id)
        changes: Dict[str, Any] = {}

        if relation_types is not None:
            types = normalize_relation_types(relation_types)
            await self.validate_relation(relation.source_entity_id, relation.target_entity_id, types)
            relation.relation_types = types
            changes["relation_types"] = types
        if importance is not None:
            relation.importance = validate_importance(importance, field_name="importance")
            changes["importance"] = importance
        if description is not None:
            relation.description = description
            changes["description"] = description

        if changes:
            await self.event_store.log(
                event_type=EventType.RELATION_UPDATED,
                entity_type="philosophical_relation",
                entity_id=relation.id,
                user_id=actor_id,
                payload=changes,
                ip_address=ip_address,
            )
        return relation

    async def delete_relation(
        self,
        relation_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> None:
        relation = await self.get_relation(relation_id)
        await self.session.delete(relation)
        await self.event_store.log(
            event_type=EventType.RELATION_DELETED,
            entity_type="philosophical_relation",
            entity_id=relation_id,
            user_id=actor_id,
            payload={
                "source": relation.source_entity_id,
                "target": relation.target_entity_id,
            },
            ip_address=ip_address,
        )

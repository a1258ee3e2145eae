"""
Philosophical entities and the learning paths through them.

A HIERARCHICAL relation ``source -> target`` means the source should be
studied before the target.
"""

import uuid
from collections import defaultdict
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from lyceum.errors import NotFoundError, ValidationError
from lyceum.kernel.events.event_store import EventStore
from lyceum.kernel.models.event_log import EventType
from lyceum.kernel.models.lecture import Lecture
from lyceum.kernel.models.philosophy import (
    EntityType,
    LectureEntityRelation,
    PhilosophicalEntity,
    PhilosophicalRelation,
    RelationType,
)
from lyceum.logging_config import get_logger

logger = get_logger(__name__)

EDITABLE_FIELDS = frozenset({
    "type",
    "name",
    "description",
    "start_year",
    "end_year",
    "birthplace",
    "nationality",
    "biography",
    "ontological_position",
    "primary_text",
    "key_terms",
    "central_question",
    "still_relevant",
    "scope",
    "geographical_focus",
    "historical_context",
    "lecture_id",
})


def has_relation_type(relation: PhilosophicalRelation, relation_type: RelationType) -> bool:
    return relation_type.value in (relation.relation_types or [])


class EntityService:
    """CRUD and graph queries over philosophical entities."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.event_store = EventStore(session)

    async def _validate(self, fields: Dict[str, Any], entity: Optional[PhilosophicalEntity] = None) -> Dict[str, Any]:
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Unknown entity fields: {', '.join(sorted(unknown))}",
                invalid_fields=sorted(unknown),
            )

        cleaned = dict(fields)
        if "name" in cleaned or entity is None:
            name = (cleaned.get("name") or "").strip()
            if not name:
                raise ValidationError("Name is required", invalid_fields=["name"])
            cleaned["name"] = name

        if "type" in cleaned or entity is None:
            try:
                cleaned["type"] = EntityType(cleaned.get("type"))
            except ValueError:
                raise ValidationError(f"Invalid entity type: {cleaned.get('type')}", invalid_fields=["type"])

        start = cleaned.get("start_year", entity.start_year if entity else None)
        end = cleaned.get("end_year", entity.end_year if entity else None)
        if start is not None and end is not None and start > end:
            raise ValidationError("Start year must not be after end year", invalid_fields=["start_year", "end_year"])

        if cleaned.get("key_terms") is not None:
            cleaned["key_terms"] = [str(term).strip() for term in cleaned["key_terms"] if str(term).strip()]

        if cleaned.get("lecture_id") is not None:
            if await self.session.get(Lecture, cleaned["lecture_id"]) is None:
                raise NotFoundError("Lecture", cleaned["lecture_id"])
        return cleaned

    async def create_entity(
        self,
        data: Dict[str, Any],
        actor_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> PhilosophicalEntity:
        fields = await self._validate(data)
        entity = PhilosophicalEntity(**fields)
        self.session.add(entity)
        await self.session.flush()

        await self.event_store.log(
            event_type=EventType.ENTITY_CREATED,
            entity_type="philosophical_entity",
            entity_id=entity.id,
            user_id=actor_id,
            payload={"type": entity.type, "name": entity.name},
            ip_address=ip_address,
        )
        return entity

    async def get_entity(self, entity_id: uuid.UUID) -> PhilosophicalEntity:
        entity = await self.session.get(PhilosophicalEntity, entity_id)
        if entity is None:
            raise NotFoundError("Philosophical entity", entity_id)
        return entity

    async def list_entities(
        self,
        entity_type: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> Tuple[List[PhilosophicalEntity], int]:
        query = select(PhilosophicalEntity)
        if entity_type:
            query = query.where(PhilosophicalEntity.type == entity_type)
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(
                    PhilosophicalEntity.name.ilike(pattern),
                    PhilosophicalEntity.description.ilike(pattern),
                )
            )

        total = (
            await self.session.execute(select(func.count()).select_from(query.subquery()))
        ).scalar() or 0
        result = await self.session.execute(
            query.order_by(PhilosophicalEntity.name)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def update_entity(
        self,
        entity_id: uuid.UUID,
        changes: Dict[str, Any],
        actor_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> PhilosophicalEntity:
        entity = await self.get_entity(entity_id)
        fields = await self._validate(changes, entity)
        for name, value in fields.items():
            setattr(entity, name, value)

        if fields:
            await self.event_store.log(
                event_type=EventType.ENTITY_UPDATED,
                entity_type="philosophical_entity",
                entity_id=entity.id,
                user_id=actor_id,
                payload={"fields": sorted(fields)},
                ip_address=ip_address,
            )
        return entity

    async def delete_entity(
        self,
        entity_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> None:
        """Delete an entity together with its relations and lecture links."""
        entity = await self.get_entity(entity_id)
        await self.session.execute(
            delete(PhilosophicalRelation).where(
                or_(
                    PhilosophicalRelation.source_entity_id == entity_id,
                    PhilosophicalRelation.target_entity_id == entity_id,
                )
            )
        )
        await self.session.execute(
            delete(LectureEntityRelation).where(LectureEntityRelation.entity_id == entity_id)
        )
        await self.session.delete(entity)

        await self.event_store.log(
            event_type=EventType.ENTITY_DELETED,
            entity_type="philosophical_entity",
            entity_id=entity_id,
            user_id=actor_id,
            payload={"name": entity.name},
            ip_address=ip_address,
        )

    async def relationships(self, entity_id: uuid.UUID) -> List[PhilosophicalRelation]:
        """Relations where the entity is either end."""
        await self.get_entity(entity_id)
        result = await self.session.execute(
            select(PhilosophicalRelation).where(
                or_(
                    PhilosophicalRelation.source_entity_id == entity_id,
                    PhilosophicalRelation.target_entity_id == entity_id,
                )
            ).order_by(PhilosophicalRelation.importance.desc())
        )
        return list(result.scalars().all())

    async def _hierarchy(self) -> Dict[uuid.UUID, List[uuid.UUID]]:
        """target -> sources of HIERARCHICAL relations."""
        # relation_types is a JSON list; filtering happens here, not in SQL
        result = await self.session.execute(select(PhilosophicalRelation))
        graph: Dict[uuid.UUID, List[uuid.UUID]] = defaultdict(list)
        for relation in result.scalars().all():
            if has_relation_type(relation, RelationType.HIERARCHICAL):
                graph[relation.target_entity_id].append(relation.source_entity_id)
        return graph

    async def prerequisites(self, entity_id: uuid.UUID) -> List[PhilosophicalEntity]:
        """Direct HIERARCHICAL predecessors of an entity."""
        await self.get_entity(entity_id)
        source_ids = (await self._hierarchy()).get(entity_id, [])
        if not source_ids:
            return []
        result = await self.session.execute(
            select(PhilosophicalEntity)
            .where(PhilosophicalEntity.id.in_(source_ids))
            .order_by(PhilosophicalEntity.name)
        )
        return list(result.scalars().all())

    async def learning_path(self, entity_id: uuid.UUID) -> List[PhilosophicalEntity]:
        """
        Everything needed to study an entity, prerequisites first, the entity last.

        Cycles in the hierarchy are skipped rather than reported.
        """
        await self.get_entity(entity_id)
        graph = await self._hierarchy()

        # Iterative post-order DFS, independent of the recursion limit
        ordered: List[uuid.UUID] = []
        seen: Set[uuid.UUID] = {entity_id}
        stack = [(entity_id, iter(graph.get(entity_id, [])))]
        while stack:
            node, sources = stack[-1]
            source = next(sources, None)
            if source is None:
                stack.pop()
                ordered.append(node)
            elif source not in seen:
                seen.add(source)
                stack.append((source, iter(graph.get(source, []))))

        result = await self.session.execute(
            select(PhilosophicalEntity).where(PhilosophicalEntity.id.in_(ordered))
        )
        by_id = {entity.id: entity for entity in result.scalars().all()}
        return [by_id[node] for node in ordered if node in by_id]

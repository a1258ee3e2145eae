"""
Links between lectures and the philosophical entities they cover.
"""

import uuid
from typing import Any, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lyceum.errors import ConflictError, NotFoundError, ValidationError
from lyceum.kernel.events.event_store import EventStore
from lyceum.kernel.models.base import enum_value
from lyceum.kernel.models.event_log import EventType
from lyceum.kernel.models.lecture import Lecture
from lyceum.kernel.models.philosophy import (
    LectureEntityRelation,
    LectureEntityRelationType,
    PhilosophicalEntity,
)


def parse_link_type(value: Any) -> LectureEntityRelationType:
    """Case-insensitive; a missing value means INTRODUCES."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return LectureEntityRelationType.INTRODUCES
    try:
        return LectureEntityRelationType(str(enum_value(value)).strip().upper())
    except ValueError:
        raise ValidationError(
            f"Invalid relation type: {value}",
            invalid_fields=["relation_type"],
        )


class LectureEntityService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.event_store = EventStore(session)

    async def _require_lecture(self, lecture_id: uuid.UUID) -> Lecture:
        lecture = await self.session.get(Lecture, lecture_id)
        if lecture is None:
            raise NotFoundError("Lecture", lecture_id)
        return lecture

    async def _find(
        self,
        lecture_id: uuid.UUID,
        entity_id: uuid.UUID,
        relation_type: LectureEntityRelationType,
    ) -> Optional[LectureEntityRelation]:
        result = await self.session.execute(
            select(LectureEntityRelation).where(
                LectureEntityRelation.lecture_id == lecture_id,
                LectureEntityRelation.entity_id == entity_id,
                LectureEntityRelation.relation_type == relation_type.value,
            )
        )
        return result.scalar_one_or_none()

    async def get_link(self, lecture_id: uuid.UUID, link_id: uuid.UUID) -> LectureEntityRelation:
        link = await self.session.get(LectureEntityRelation, link_id)
        if link is None or link.lecture_id != lecture_id:
            raise NotFoundError("Lecture entity relation", link_id)
        return link

    async def list_links(
        self, lecture_id: uuid.UUID
    ) -> List[Tuple[LectureEntityRelation, PhilosophicalEntity]]:
        await self._require_lecture(lecture_id)
        result = await self.session.execute(
            select(LectureEntityRelation, PhilosophicalEntity)
            .join(PhilosophicalEntity, PhilosophicalEntity.id == LectureEntityRelation.entity_id)
            .where(LectureEntityRelation.lecture_id == lecture_id)
            .order_by(LectureEntityRelation.relation_type, PhilosophicalEntity.name)
        )
        return [(link, entity) for link, entity in result.all()]

    async def link_entity(
        self,
        lecture_id: uuid.UUID,
        entity_id: uuid.UUID,
        relation_type: Any = None,
        actor_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> LectureEntityRelation:
        link_type = parse_link_type(relation_type)
        await self._require_lecture(lecture_id)
        if await self.session.get(PhilosophicalEntity, entity_id) is None:
            raise NotFoundError("Philosophical entity", entity_id)
        if await self._find(lecture_id, entity_id, link_type) is not None:
            raise ConflictError(f"Entity already linked to this lecture as {link_type.value}")

        link = LectureEntityRelation(
            lecture_id=lecture_id,
            entity_id=entity_id,
            relation_type=link_type.value,
        )
        self.session.add(link)
        await self.session.flush()

        await self.event_store.log(
            event_type=EventType.ENTITY_LINKED,
            entity_type="lecture",
            entity_id=lecture_id,
            user_id=actor_id,
            payload={"entity_id": entity_id, "relation_type": link_type},
            ip_address=ip_address,
        )
        return link

    async def update_link(
        self,
        lecture_id: uuid.UUID,
        link_id: uuid.UUID,
        relation_type: Any,
        actor_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> LectureEntityRelation:
        link = await self.get_link(lecture_id, link_id)
        link_type = parse_link_type(relation_type)
        if enum_value(link.relation_type) == link_type.value:
            return link

        if await self._find(lecture_id, link.entity_id, link_type) is not None:
            raise ConflictError(f"Entity already linked to this lecture as {link_type.value}")

        previous = enum_value(link.relation_type)
        link.relation_type = link_type.value
        await self.event_store.log(
            event_type=EventType.ENTITY_LINK_UPDATED,
            entity_type="lecture",
            entity_id=lecture_id,
            user_id=actor_id,
            payload={"link_id": link.id, "from": previous, "to": link_type},
            ip_address=ip_address,
        )
        return link

    async def unlink(
        self,
        lecture_id: uuid.UUID,
        link_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> None:
        link = await self.get_link(lecture_id, link_id)
        await self.session.delete(link)
        await self.event_store.log(
            event_type=EventType.ENTITY_UNLINKED,
            entity_type="lecture",
            entity_id=lecture_id,
            user_id=actor_id,
            payload={"entity_id": link.entity_id, "relation_type": enum_value(link.relation_type)},
            ip_address=ip_address,
        )

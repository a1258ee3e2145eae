"""
Lecture catalogue: create, browse, edit and delete lectures.
"""

import uuid
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from lyceum.errors import DependencyError, NotFoundError, ValidationError
from lyceum.kernel.events.event_store import EventStore
from lyceum.kernel.models.event_log import EventType
from lyceum.kernel.models.lecture import ContentType, Lecture, LecturePrerequisite
from lyceum.kernel.models.philosophy import LectureEntityRelation, PhilosophicalEntity
from lyceum.kernel.models.progress import Progress, Reflection
from lyceum.logging_config import get_logger

logger = get_logger(__name__)

REQUIRED_FIELDS = ("title", "description", "content_url", "lecturer_name", "category")

EDITABLE_FIELDS = frozenset({
    "title",
    "description",
    "content_url",
    "lecturer_name",
    "content_type",
    "category",
    "order",
    "embed_allowed",
    "source_attribution",
    "pre_lecture_prompt",
    "initial_prompt",
    "mastery_prompt",
    "evaluation_prompt",
    "discussion_prompts",
})


def normalize_content_url(url: str) -> str:
    """Force https: bare hosts get a scheme and http is upgraded."""
    url = (url or "").strip()
    if not url:
        raise ValidationError("Content URL is required", invalid_fields=["content_url"])
    if url.startswith("http://"):
        return "https://" + url[len("http://"):]
    if "://" not in url:
        return "https://" + url.lstrip("/")
    return url


class LectureService:
    """CRUD over the lecture catalogue with audit logging."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.event_store = EventStore(session)

    def _clean(self, data: Dict[str, Any], partial: bool) -> Dict[str, Any]:
        unknown = set(data) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Unknown lecture fields: {', '.join(sorted(unknown))}",
                invalid_fields=sorted(unknown),
            )

        cleaned = dict(data)
        missing = [
            name for name in REQUIRED_FIELDS
            if (name in cleaned or not partial) and not str(cleaned.get(name) or "").strip()
        ]
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                invalid_fields=missing,
            )

        for name in REQUIRED_FIELDS:
            if name in cleaned:
                cleaned[name] = cleaned[name].strip()
        if "content_url" in cleaned:
            cleaned["content_url"] = normalize_content_url(cleaned["content_url"])
        if "content_type" in cleaned and cleaned["content_type"] is not None:
            try:
                cleaned["content_type"] = ContentType(cleaned["content_type"])
            except ValueError:
                raise ValidationError(
                    f"Invalid content type: {cleaned['content_type']}",
                    invalid_fields=["content_type"],
                )
        if cleaned.get("order") is not None and cleaned["order"] < 0:
            raise ValidationError("Order must be zero or greater", invalid_fields=["order"])
        return cleaned

    async def _next_order(self, category: str) -> int:
        result = await self.session.execute(
            select(func.max(Lecture.order)).where(Lecture.category == category)
        )
        current = result.scalar()
        return 0 if current is None else current + 1

    async def create_lecture(
        self,
        data: Dict[str, Any],
        actor_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> Lecture:
        """Create a lecture; without an explicit order it goes last in its category."""
        fields = self._clean(data, partial=False)
        if fields.get("order") is None:
            fields["order"] = await self._next_order(fields["category"])

        lecture = Lecture(**fields)
        self.session.add(lecture)
        await self.session.flush()

        await self.event_store.log(
            event_type=EventType.LECTURE_CREATED,
            entity_type="lecture",
            entity_id=lecture.id,
            user_id=actor_id,
            payload={"title": lecture.title, "category": lecture.category, "order": lecture.order},
            ip_address=ip_address,
        )
        logger.info("Lecture created", extra={"lecture_id": str(lecture.id)})
        return lecture

    async def get_lecture(self, lecture_id: uuid.UUID) -> Lecture:
        lecture = await self.session.get(Lecture, lecture_id)
        if lecture is None:
            raise NotFoundError("Lecture", lecture_id)
        return lecture

    async def list_lectures(
        self,
        category: Optional[str] = None,
        lecturer_name: Optional[str] = None,
        content_type: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> Tuple[List[Lecture], int]:
        """Filtered page of lectures ordered by category then position."""
        if page < 1 or page_size < 1:
            raise ValidationError("Page and page size must be positive", invalid_fields=["page"])

        query = select(Lecture)
        if category:
            query = query.where(Lecture.category == category)
        if lecturer_name:
            query = query.where(Lecture.lecturer_name.ilike(f"%{lecturer_name}%"))
        if content_type:
            query = query.where(Lecture.content_type == content_type)
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(Lecture.title.ilike(pattern), Lecture.description.ilike(pattern))
            )

        total = (
            await self.session.execute(select(func.count()).select_from(query.subquery()))
        ).scalar() or 0

        result = await self.session.execute(
            query.order_by(Lecture.category, Lecture.order, Lecture.title)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def update_lecture(
        self,
        lecture_id: uuid.UUID,
        changes: Dict[str, Any],
        actor_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> Lecture:
        lecture = await self.get_lecture(lecture_id)
        fields = self._clean(changes, partial=True)

        for name, value in fields.items():
            setattr(lecture, name, value)

        if fields:
            await self.event_store.log(
                event_type=EventType.LECTURE_UPDATED,
                entity_type="lecture",
                entity_id=lecture.id,
                user_id=actor_id,
                payload={"fields": sorted(fields)},
                ip_address=ip_address,
            )
        return lecture

    async def delete_lecture(
        self,
        lecture_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> None:
        """
        Delete a lecture and everything hanging off it.

        Raises:
            DependencyError: If another lecture lists this one as a prerequisite
        """
        lecture = await self.get_lecture(lecture_id)

        result = await self.session.execute(
            select(Lecture.title)
            .join(LecturePrerequisite, LecturePrerequisite.lecture_id == Lecture.id)
            .where(LecturePrerequisite.prerequisite_lecture_id == lecture_id)
            .order_by(Lecture.title)
        )
        dependants = list(result.scalars().all())
        if dependants:
            raise DependencyError(
                "Lecture is a prerequisite for other lectures",
                dependencies=dependants,
            )

        category = lecture.category
        await self.session.execute(
            delete(LecturePrerequisite).where(LecturePrerequisite.lecture_id == lecture_id)
        )
        await self.session.execute(
            delete(LectureEntityRelation).where(LectureEntityRelation.lecture_id == lecture_id)
        )
        await self.session.execute(delete(Reflection).where(Reflection.lecture_id == lecture_id))
        await self.session.execute(delete(Progress).where(Progress.lecture_id == lecture_id))
        await self.session.execute(
            update(PhilosophicalEntity)
            .where(PhilosophicalEntity.lecture_id == lecture_id)
            .values(lecture_id=None)
        )
        await self.session.delete(lecture)
        await self.session.flush()

        await self._rebalance_order(category)

        await self.event_store.log(
            event_type=EventType.LECTURE_DELETED,
            entity_type="lecture",
            entity_id=lecture_id,
            user_id=actor_id,
            payload={"title": lecture.title, "category": category},
            ip_address=ip_address,
        )
        logger.info("Lecture deleted", extra={"lecture_id": str(lecture_id)})

    async def _rebalance_order(self, category: str) -> None:
        """Renumber a category's lectures 0..n-1, keeping their relative order."""
        result = await self.session.execute(
            select(Lecture)
            .where(Lecture.category == category)
            .order_by(Lecture.order, Lecture.created_at)
        )
        for position, lecture in enumerate(result.scalars().all()):
            if lecture.order != position:
                lecture.order = position

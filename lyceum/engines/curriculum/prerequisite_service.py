"""
Prerequisite management and lecture availability.

Prerequisite edges form a DAG: ``lecture -> prerequisite``. Adding an edge
that would close a cycle is rejected with the offending path.
"""

import uuid
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from lyceum.errors import (
    CircularDependencyError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from lyceum.engines.progression.readiness import (
    PrerequisiteState,
    Readiness,
    compute_readiness,
    validate_importance,
)
from lyceum.engines.progression.workflow import SimpleStatus, simplify_status
from lyceum.kernel.events.event_store import EventStore
from lyceum.kernel.models.event_log import EventType
from lyceum.kernel.models.lecture import Lecture, LecturePrerequisite
from lyceum.kernel.models.progress import Progress, ProgressStatus
from lyceum.logging_config import get_logger
from lyceum.orchestration.state_machine import coerce_status

logger = get_logger(__name__)

DEFAULT_SUGGESTION_LIMIT = 5


@dataclass
class LectureAvailability:
    lecture: Lecture
    status: ProgressStatus
    simple_status: str
    readiness: Readiness
    prerequisites_count: int


class PrerequisiteService:
    """Edges between lectures, plus the per-learner views built on them."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.event_store = EventStore(session)

    async def _require_lecture(self, lecture_id: uuid.UUID) -> Lecture:
        lecture = await self.session.get(Lecture, lecture_id)
        if lecture is None:
            raise NotFoundError("Lecture", lecture_id)
        return lecture

    async def _get_edge(
        self, lecture_id: uuid.UUID, prerequisite_id: uuid.UUID
    ) -> Optional[LecturePrerequisite]:
        result = await self.session.execute(
            select(LecturePrerequisite).where(
                LecturePrerequisite.lecture_id == lecture_id,
                LecturePrerequisite.prerequisite_lecture_id == prerequisite_id,
            )
        )
        return result.scalar_one_or_none()

    async def _adjacency(self) -> Dict[uuid.UUID, List[uuid.UUID]]:
        result = await self.session.execute(
            select(LecturePrerequisite.lecture_id, LecturePrerequisite.prerequisite_lecture_id)
        )
        graph: Dict[uuid.UUID, List[uuid.UUID]] = defaultdict(list)
        for lecture_id, prerequisite_id in result.all():
            graph[lecture_id].append(prerequisite_id)
        return graph

    @staticmethod
    def find_path(
        graph: Dict[uuid.UUID, List[uuid.UUID]],
        start: uuid.UUID,
        goal: uuid.UUID,
    ) -> Optional[List[uuid.UUID]]:
        """Depth-first search for a prerequisite chain from start to goal."""
        stack: List[Tuple[uuid.UUID, List[uuid.UUID]]] = [(start, [start])]
        seen: Set[uuid.UUID] = set()
        while stack:
            node, path = stack.pop()
            if node == goal:
                return path
            if node in seen:
                continue
            seen.add(node)
            for nxt in graph.get(node, []):
                if nxt not in seen:
                    stack.append((nxt, path + [nxt]))
        return None

    async def list_prerequisites(
        self, lecture_id: uuid.UUID
    ) -> List[Tuple[LecturePrerequisite, Lecture]]:
        """Edges of a lecture: required first, then by importance."""
        await self._require_lecture(lecture_id)
        result = await self.session.execute(
            select(LecturePrerequisite, Lecture)
            .join(Lecture, Lecture.id == LecturePrerequisite.prerequisite_lecture_id)
            .where(LecturePrerequisite.lecture_id == lecture_id)
            .order_by(
                desc(LecturePrerequisite.is_required),
                desc(LecturePrerequisite.importance_level),
            )
        )
        return [(edge, lecture) for edge, lecture in result.all()]

    async def add_prerequisite(
        self,
        lecture_id: uuid.UUID,
        prerequisite_id: uuid.UUID,
        is_required: bool = True,
        importance_level: int = 3,
        actor_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> LecturePrerequisite:
        """
        Declare that ``lecture_id`` needs ``prerequisite_id``.

        Raises:
            ValidationError: Self-reference or bad importance
            ConflictError: Edge already exists
            CircularDependencyError: Edge would create a cycle
        """
        if lecture_id == prerequisite_id:
            raise ValidationError(
                "A lecture cannot be its own prerequisite",
                invalid_fields=["prerequisite_lecture_id"],
            )
        validate_importance(importance_level)
        await self._require_lecture(lecture_id)
        await self._require_lecture(prerequisite_id)

        if await self._get_edge(lecture_id, prerequisite_id) is not None:
            raise ConflictError("Prerequisite already exists")

        # lecture -> prerequisite closes a cycle if prerequisite already reaches lecture
        path = self.find_path(await self._adjacency(), prerequisite_id, lecture_id)
        if path is not None:
            cycle = [str(lecture_id)] + [str(node) for node in path]
            logger.info("Rejected circular prerequisite", extra={"path": cycle})
            raise CircularDependencyError(
                "Adding this prerequisite would create a circular dependency",
                path=cycle,
            )

        edge = LecturePrerequisite(
            lecture_id=lecture_id,
            prerequisite_lecture_id=prerequisite_id,
            is_required=is_required,
            importance_level=importance_level,
        )
        self.session.add(edge)
        await self.session.flush()

        await self.event_store.log(
            event_type=EventType.PREREQUISITE_ADDED,
            entity_type="lecture",
            entity_id=lecture_id,
            user_id=actor_id,
            payload={
                "prerequisite_lecture_id": prerequisite_id,
                "is_required": is_required,
                "importance_level": importance_level,
            },
            ip_address=ip_address,
        )
        return edge

    async def update_prerequisite(
        self,
        lecture_id: uuid.UUID,
        prerequisite_id: uuid.UUID,
        is_required: Optional[bool] = None,
        importance_level: Optional[int] = None,
        actor_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> LecturePrerequisite:
        edge = await self._get_edge(lecture_id, prerequisite_id)
        if edge is None:
            raise NotFoundError("Prerequisite")

        changes = {}
        if is_required is not None:
            edge.is_required = is_required
            changes["is_required"] = is_required
        if importance_level is not None:
            edge.importance_level = validate_importance(importance_level)
            changes["importance_level"] = importance_level

        if changes:
            await self.event_store.log(
                event_type=EventType.PREREQUISITE_UPDATED,
                entity_type="lecture",
                entity_id=lecture_id,
                user_id=actor_id,
                payload={"prerequisite_lecture_id": prerequisite_id, **changes},
                ip_address=ip_address,
            )
        return edge

    async def remove_prerequisite(
        self,
        lecture_id: uuid.UUID,
        prerequisite_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> None:
        edge = await self._get_edge(lecture_id, prerequisite_id)
        if edge is None:
            raise NotFoundError("Prerequisite")

        await self.session.delete(edge)
        await self.event_store.log(
            event_type=EventType.PREREQUISITE_REMOVED,
            entity_type="lecture",
            entity_id=lecture_id,
            user_id=actor_id,
            payload={"prerequisite_lecture_id": prerequisite_id},
            ip_address=ip_address,
        )

    async def lectures_requiring(self, prerequisite_id: uuid.UUID) -> List[Lecture]:
        """Lectures that list ``prerequisite_id`` as a prerequisite."""
        await self._require_lecture(prerequisite_id)
        result = await self.session.execute(
            select(Lecture)
            .join(LecturePrerequisite, LecturePrerequisite.lecture_id == Lecture.id)
            .where(LecturePrerequisite.prerequisite_lecture_id == prerequisite_id)
            .order_by(Lecture.category, Lecture.order)
        )
        return list(result.scalars().all())

    async def available_lectures(self, user_id: uuid.UUID) -> List[LectureAvailability]:
        """Every lecture with the learner's status and readiness for it."""
        lectures = list(
            (await self.session.execute(
                select(Lecture).order_by(Lecture.category, Lecture.order)
            )).scalars().all()
        )
        edges = list((await self.session.execute(select(LecturePrerequisite))).scalars().all())
        progress_rows = (
            await self.session.execute(
                select(Progress.lecture_id, Progress.status).where(Progress.user_id == user_id)
            )
        ).all()
        statuses = {lecture_id: coerce_status(status) for lecture_id, status in progress_rows}

        edges_by_lecture: Dict[uuid.UUID, List[LecturePrerequisite]] = defaultdict(list)
        for edge in edges:
            edges_by_lecture[edge.lecture_id].append(edge)

        items = []
        for lecture in lectures:
            lecture_edges = edges_by_lecture.get(lecture.id, [])
            readiness = compute_readiness(
                PrerequisiteState(
                    lecture_id=edge.prerequisite_lecture_id,
                    required=edge.is_required,
                    importance=edge.importance_level,
                    satisfied=statuses.get(edge.prerequisite_lecture_id) == ProgressStatus.MASTERED,
                )
                for edge in lecture_edges
            )
            status = statuses.get(lecture.id, ProgressStatus.LOCKED)
            # An untouched lecture whose gate is open is shown as available
            shown = ProgressStatus.READY if status == ProgressStatus.LOCKED and readiness.satisfied else status
            items.append(
                LectureAvailability(
                    lecture=lecture,
                    status=status,
                    simple_status=simplify_status(shown),
                    readiness=readiness,
                    prerequisites_count=len(lecture_edges),
                )
            )
        return items

    async def suggest_next_lectures(
        self, user_id: uuid.UUID, limit: int = DEFAULT_SUGGESTION_LIMIT
    ) -> List[LectureAvailability]:
        """In-progress lectures first, then open ones by readiness, category and order."""
        candidates = [
            item for item in await self.available_lectures(user_id)
            if item.simple_status in (SimpleStatus.IN_PROGRESS, SimpleStatus.AVAILABLE)
        ]
        candidates.sort(
            key=lambda item: (
                item.simple_status != SimpleStatus.IN_PROGRESS,
                -item.readiness.score,
                item.lecture.category,
                item.lecture.order,
            )
        )
        return candidates[:limit]

"""
Progression Service - DB-backed entry point to the learner workflow.

Loads progress, runs the state machine, persists the outcome and writes the
audit trail. Every mutation happens inside the caller's session.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple, Union

from sqlalchemy import select, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lyceum.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    SequenceError,
    ValidationError,
)
from lyceum.engines.progression.mastery import validate_reflection
from lyceum.engines.progression.readiness import (
    PrerequisiteState,
    Readiness,
    compute_readiness,
)
from lyceum.engines.progression.workflow import (
    completion_percentage,
    next_action,
    prompt_type_for_status,
    simplify_status,
    step_description,
)
from lyceum.kernel.events.event_store import EventStore
from lyceum.kernel.models.base import as_utc, enum_value, utcnow
from lyceum.kernel.models.event_log import EventType
from lyceum.kernel.models.lecture import Lecture, LecturePrerequisite
from lyceum.kernel.models.progress import (
    Progress,
    ProgressStatus,
    PromptType,
    Reflection,
    ReflectionStatus,
)
from lyceum.kernel.models.user import User
from lyceum.logging_config import get_logger
from lyceum.orchestration.state_machine import (
    ProgressEvent,
    TransitionPayload,
    TransitionResult,
    coerce_status,
    is_at_least,
    is_valid_transition,
    transition,
    valid_transitions,
)

logger = get_logger(__name__)

# Events that need the readiness gate when they move a learner forward
_GATED_EVENTS = {
    ProgressEvent.UNLOCK: ProgressStatus.READY,
    ProgressEvent.START: ProgressStatus.STARTED,
}


@dataclass
class ProgressOutcome:
    """What apply_event did."""

    progress: Progress
    result: TransitionResult
    created: bool = False
    reflection: Optional[Reflection] = None


@dataclass
class CompletionStatus:
    lecture_id: uuid.UUID
    user_id: uuid.UUID
    status: ProgressStatus
    simple_status: str
    completion_percentage: int
    next_prompt_type: Optional[PromptType]
    next_action: str
    step_description: str
    reflection_counts: Dict[str, int] = field(default_factory=dict)
    mastery_score: Optional[float] = None
    time_spent_seconds: int = 0
    completed_at: Optional[datetime] = None


class ProgressionService:
    """
    Learner progression for (user, lecture) pairs.

    Usage:
        service = ProgressionService(session)
        outcome = await service.apply_event(user.id, lecture.id, ProgressEvent.VIEWED)
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.event_store = EventStore(session)

    async def get_lecture(self, lecture_id: uuid.UUID) -> Lecture:
        lecture = await self.session.get(Lecture, lecture_id)
        if lecture is None:
            raise NotFoundError("Lecture", lecture_id)
        return lecture

    async def get_progress(self, user_id: uuid.UUID, lecture_id: uuid.UUID) -> Optional[Progress]:
        result = await self.session.execute(
            select(Progress).where(
                Progress.user_id == user_id,
                Progress.lecture_id == lecture_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_status(self, user_id: uuid.UUID, lecture_id: uuid.UUID) -> ProgressStatus:
        """Current status; LOCKED when the user has never touched the lecture."""
        await self.get_lecture(lecture_id)
        progress = await self.get_progress(user_id, lecture_id)
        if progress is None:
            return ProgressStatus.LOCKED
        return coerce_status(progress.status)

    async def _statuses_for(
        self, user_id: uuid.UUID, lecture_ids: List[uuid.UUID]
    ) -> Dict[uuid.UUID, ProgressStatus]:
        if not lecture_ids:
            return {}
        result = await self.session.execute(
            select(Progress.lecture_id, Progress.status).where(
                Progress.user_id == user_id,
                Progress.lecture_id.in_(lecture_ids),
            )
        )
        return {lecture_id: coerce_status(status) for lecture_id, status in result.all()}

    async def prerequisite_states(
        self, user_id: uuid.UUID, lecture_id: uuid.UUID
    ) -> List[PrerequisiteState]:
        """Prerequisite edges of a lecture, each marked satisfied if the user mastered it."""
        result = await self.session.execute(
            select(LecturePrerequisite, Lecture.title)
            .join(Lecture, Lecture.id == LecturePrerequisite.prerequisite_lecture_id)
            .where(LecturePrerequisite.lecture_id == lecture_id)
            .order_by(
                desc(LecturePrerequisite.is_required),
                desc(LecturePrerequisite.importance_level),
            )
        )
        rows = result.all()
        statuses = await self._statuses_for(
            user_id, [edge.prerequisite_lecture_id for edge, _ in rows]
        )
        return [
            PrerequisiteState(
                lecture_id=edge.prerequisite_lecture_id,
                title=title,
                required=edge.is_required,
                importance=edge.importance_level,
                satisfied=statuses.get(edge.prerequisite_lecture_id) == ProgressStatus.MASTERED,
            )
            for edge, title in rows
        ]

    async def get_readiness(self, user_id: uuid.UUID, lecture_id: uuid.UUID) -> Readiness:
        await self.get_lecture(lecture_id)
        return compute_readiness(await self.prerequisite_states(user_id, lecture_id))

    async def apply_event(
        self,
        user_id: uuid.UUID,
        lecture_id: uuid.UUID,
        event: Union[ProgressEvent, str],
        payload: Optional[TransitionPayload] = None,
        actor_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> ProgressOutcome:
        """
        Apply a workflow event and persist the new status.

        Raises:
            NotFoundError: Unknown lecture, or a mastery score with no progress record
            SequenceError: Event not allowed now, or required prerequisites missing
            ValidationError: Bad reflection length or score
        """
        try:
            event = ProgressEvent(event)
        except ValueError:
            raise ValidationError(f"Unknown progress event: {event}", invalid_fields=["event"])
        payload = payload or TransitionPayload()
        await self.get_lecture(lecture_id)

        progress = await self.get_progress(user_id, lecture_id)
        if progress is None and event == ProgressEvent.MASTERY_SCORE:
            raise NotFoundError("Progress record", lecture_id)

        current = coerce_status(progress.status) if progress else ProgressStatus.LOCKED

        gate_target = _GATED_EVENTS.get(event)
        if gate_target is not None and not is_at_least(current, gate_target):
            await self._require_prerequisites(user_id, lecture_id, current, event)

        result = transition(current, event, payload)
        now = utcnow()

        created = progress is None
        if created:
            progress = await self._insert_progress(user_id, lecture_id, result.status)
            if progress is None:
                # Another request created the row first; apply the event to that row
                return await self.apply_event(user_id, lecture_id, event, payload, actor_id, ip_address)
        else:
            progress.status = result.status

        if event == ProgressEvent.VIEWED:
            progress.last_viewed = now
        if result.status == ProgressStatus.MASTERED and progress.completed_at is None:
            progress.completed_at = now

        reflection = None
        if event == ProgressEvent.REFLECTION:
            reflection = Reflection(
                user_id=user_id,
                lecture_id=lecture_id,
                prompt_type=payload.prompt_type,
                content=payload.content,
                word_count=result.word_count or 0,
                ai_evaluation=payload.ai_evaluation,
            )
            self.session.add(reflection)
        elif event == ProgressEvent.MASTERY_SCORE:
            reflection = await self._record_mastery_score(user_id, lecture_id, result, payload)

        await self.session.flush()

        await self._log_outcome(progress, result, actor_id or user_id, ip_address, reflection)
        return ProgressOutcome(progress=progress, result=result, created=created, reflection=reflection)

    async def _insert_progress(
        self, user_id: uuid.UUID, lecture_id: uuid.UUID, status: ProgressStatus
    ) -> Optional[Progress]:
        """New progress row in a savepoint; None when the (user, lecture) row already exists."""
        progress = Progress(user_id=user_id, lecture_id=lecture_id, status=status)
        try:
            async with self.session.begin_nested():
                self.session.add(progress)
        except IntegrityError:
            logger.info(
                "Progress record created concurrently",
                extra={"user_id": str(user_id), "lecture_id": str(lecture_id)},
            )
            return None
        return progress

    async def _require_prerequisites(
        self,
        user_id: uuid.UUID,
        lecture_id: uuid.UUID,
        current: ProgressStatus,
        event: ProgressEvent,
    ) -> None:
        states = await self.prerequisite_states(user_id, lecture_id)
        readiness = compute_readiness(states)
        if readiness.satisfied:
            return
        missing = [p.title or str(p.lecture_id) for p in states if p.required and not p.satisfied]
        logger.info(
            "Prerequisite gate denied",
            extra={
                "user_id": str(user_id),
                "lecture_id": str(lecture_id),
                "missing": missing,
                "readiness_score": readiness.score,
            },
        )
        raise SequenceError(
            "Required prerequisites not completed: " + ", ".join(missing),
            current_status=current.value,
            event=event.value,
        )

    async def latest_reflection(
        self,
        user_id: uuid.UUID,
        lecture_id: uuid.UUID,
        prompt_type: PromptType,
    ) -> Optional[Reflection]:
        result = await self.session.execute(
            select(Reflection)
            .where(
                Reflection.user_id == user_id,
                Reflection.lecture_id == lecture_id,
                Reflection.prompt_type == prompt_type.value,
            )
            .order_by(desc(Reflection.created_at))
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _record_mastery_score(
        self,
        user_id: uuid.UUID,
        lecture_id: uuid.UUID,
        result: TransitionResult,
        payload: TransitionPayload,
    ) -> Optional[Reflection]:
        reflection = await self.latest_reflection(user_id, lecture_id, PromptType.MASTERY)
        if reflection is None:
            return None
        reflection.score = result.mastery.score
        reflection.status = (
            ReflectionStatus.MASTERY_ACHIEVED if result.mastery.mastered else ReflectionStatus.EVALUATED
        )
        if payload.ai_evaluation is not None:
            reflection.ai_evaluation = payload.ai_evaluation
        return reflection

    async def _log_outcome(
        self,
        progress: Progress,
        result: TransitionResult,
        actor_id: uuid.UUID,
        ip_address: Optional[str],
        reflection: Optional[Reflection],
    ) -> None:
        base_payload = {
            "user_id": progress.user_id,
            "lecture_id": progress.lecture_id,
            "event": result.event,
            "from_status": result.previous,
            "to_status": result.status,
        }

        if result.event == ProgressEvent.REFLECTION and reflection is not None:
            await self.event_store.log(
                event_type=EventType.REFLECTION_SUBMITTED,
                entity_type="reflection",
                entity_id=reflection.id,
                user_id=actor_id,
                payload={**base_payload, "prompt_type": reflection.prompt_type, "word_count": reflection.word_count},
                ip_address=ip_address,
            )
        if result.mastery is not None:
            await self.event_store.log(
                event_type=EventType.MASTERY_EVALUATED,
                entity_type="progress",
                entity_id=progress.id,
                user_id=actor_id,
                payload={**base_payload, "score": result.mastery.score, "mastered": result.mastery.mastered},
                ip_address=ip_address,
            )
            logger.info(
                "Mastery evaluated",
                extra={
                    "user_id": str(progress.user_id),
                    "lecture_id": str(progress.lecture_id),
                    "score": result.mastery.score,
                    "mastered": result.mastery.mastered,
                },
            )

        if result.changed:
            await self.event_store.log(
                event_type=EventType.PROGRESS_TRANSITIONED,
                entity_type="progress",
                entity_id=progress.id,
                user_id=actor_id,
                payload=base_payload,
                ip_address=ip_address,
            )
            logger.info(
                "Progress transitioned",
                extra={
                    "user_id": str(progress.user_id),
                    "lecture_id": str(progress.lecture_id),
                    "from_status": result.previous.value,
                    "to_status": result.status.value,
                },
            )
        elif result.event == ProgressEvent.VIEWED:
            await self.event_store.log(
                event_type=EventType.PROGRESS_VIEWED,
                entity_type="progress",
                entity_id=progress.id,
                user_id=actor_id,
                payload=base_payload,
                ip_address=ip_address,
            )

    async def create_progress(
        self,
        user_id: uuid.UUID,
        lecture_id: uuid.UUID,
        status: ProgressStatus = ProgressStatus.LOCKED,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Progress:
        """Create a progress record explicitly (ConflictError if one exists)."""
        await self.get_lecture(lecture_id)
        if await self.get_progress(user_id, lecture_id) is not None:
            raise ConflictError("Progress record already exists")

        now = utcnow()
        progress = Progress(
            user_id=user_id,
            lecture_id=lecture_id,
            status=status,
            completed_at=now if status == ProgressStatus.MASTERED else None,
        )
        self.session.add(progress)
        await self.session.flush()

        await self.event_store.log(
            event_type=EventType.PROGRESS_CREATED,
            entity_type="progress",
            entity_id=progress.id,
            user_id=actor_id or user_id,
            payload={"user_id": user_id, "lecture_id": lecture_id, "status": status},
        )
        return progress

    async def set_status(
        self,
        user_id: uuid.UUID,
        lecture_id: uuid.UUID,
        status: Union[ProgressStatus, str],
        actor_id: Optional[uuid.UUID] = None,
        ip_address: Optional[str] = None,
    ) -> Progress:
        """
        Move a progress record one step along the direct-transition table.

        Raises:
            NotFoundError: No progress record for the pair
            SequenceError: The step is not a valid transition
        """
        target = coerce_status(status)
        progress = await self.get_progress(user_id, lecture_id)
        if progress is None:
            raise NotFoundError("Progress record", lecture_id)

        current = coerce_status(progress.status)
        if not is_valid_transition(current, target):
            allowed = ", ".join(s.value for s in valid_transitions(current)) or "none"
            raise SequenceError(
                f"Invalid status transition: {current.value} -> {target.value} (allowed: {allowed})",
                current_status=current.value,
                event="set_status",
            )

        progress.status = target
        if target == ProgressStatus.MASTERED and progress.completed_at is None:
            progress.completed_at = utcnow()

        await self.event_store.log(
            event_type=EventType.PROGRESS_TRANSITIONED,
            entity_type="progress",
            entity_id=progress.id,
            user_id=actor_id or user_id,
            payload={
                "user_id": user_id,
                "lecture_id": lecture_id,
                "event": "set_status",
                "from_status": current,
                "to_status": target,
            },
            ip_address=ip_address,
        )
        logger.info(
            "Progress status set",
            extra={"lecture_id": str(lecture_id), "from_status": current.value, "to_status": target.value},
        )
        return progress

    async def list_user_progress(self, user_id: uuid.UUID) -> List[Tuple[Progress, Lecture]]:
        result = await self.session.execute(
            select(Progress, Lecture)
            .join(Lecture, Lecture.id == Progress.lecture_id)
            .where(Progress.user_id == user_id)
            .order_by(Lecture.category, Lecture.order)
        )
        return [(progress, lecture) for progress, lecture in result.all()]

    async def completion_status(
        self,
        user_id: uuid.UUID,
        lecture_id: uuid.UUID,
        viewer: User,
    ) -> CompletionStatus:
        """Progress summary for one lecture; readable by the learner or staff."""
        if viewer.id != user_id and not viewer.is_staff:
            raise ForbiddenError("Not allowed to view this learner's progress")

        await self.get_lecture(lecture_id)
        progress = await self.get_progress(user_id, lecture_id)
        status = coerce_status(progress.status) if progress else ProgressStatus.LOCKED

        result = await self.session.execute(
            select(Reflection).where(
                Reflection.user_id == user_id,
                Reflection.lecture_id == lecture_id,
            ).order_by(Reflection.created_at)
        )
        reflections = list(result.scalars().all())

        counts = {p.value: 0 for p in PromptType}
        mastery_score = None
        for reflection in reflections:
            counts[enum_value(reflection.prompt_type)] = counts.get(enum_value(reflection.prompt_type), 0) + 1
            if enum_value(reflection.prompt_type) == PromptType.MASTERY.value and reflection.score is not None:
                mastery_score = reflection.score

        time_spent = 0
        if progress is not None and progress.last_viewed is not None:
            delta = as_utc(progress.last_viewed) - as_utc(progress.created_at)
            time_spent = max(0, int(delta.total_seconds()))

        return CompletionStatus(
            lecture_id=lecture_id,
            user_id=user_id,
            status=status,
            simple_status=simplify_status(status),
            completion_percentage=completion_percentage(status),
            next_prompt_type=prompt_type_for_status(status),
            next_action=next_action(status),
            step_description=step_description(status),
            reflection_counts=counts,
            mastery_score=mastery_score,
            time_spent_seconds=time_spent,
            completed_at=progress.completed_at if progress else None,
        )

    async def list_reflections(
        self,
        user_id: uuid.UUID,
        lecture_id: Optional[uuid.UUID] = None,
        prompt_type: Optional[PromptType] = None,
    ) -> List[Reflection]:
        query = select(Reflection).where(Reflection.user_id == user_id)
        if lecture_id is not None:
            query = query.where(Reflection.lecture_id == lecture_id)
        if prompt_type is not None:
            query = query.where(Reflection.prompt_type == PromptType(prompt_type).value)
        result = await self.session.execute(query.order_by(desc(Reflection.created_at)))
        return list(result.scalars().all())

    async def get_reflection(self, reflection_id: uuid.UUID, viewer: User) -> Reflection:
        """A single reflection; only its author or an admin may see it."""
        reflection = await self.session.get(Reflection, reflection_id)
        if reflection is None:
            raise NotFoundError("Reflection", reflection_id)
        if reflection.user_id != viewer.id and not viewer.is_admin:
            raise ForbiddenError("Not allowed to access this reflection")
        return reflection

    async def update_reflection(
        self,
        reflection_id: uuid.UUID,
        viewer: User,
        content: Optional[str] = None,
        ai_evaluation: Optional[dict] = None,
        ip_address: Optional[str] = None,
    ) -> Reflection:
        """
        Edit a reflection's text or stored evaluation.

        New content must still meet the word minimum for its prompt type.
        Progress status is not touched.
        """
        reflection = await self.get_reflection(reflection_id, viewer)
        changes = {}
        if content is not None:
            reflection.word_count = validate_reflection(reflection.prompt_type, content)
            reflection.content = content
            changes["word_count"] = reflection.word_count
        if ai_evaluation is not None:
            reflection.ai_evaluation = ai_evaluation
            changes["ai_evaluation"] = True

        if changes:
            await self.event_store.log(
                event_type=EventType.REFLECTION_UPDATED,
                entity_type="reflection",
                entity_id=reflection.id,
                user_id=viewer.id,
                payload=changes,
                ip_address=ip_address,
            )
        return reflection

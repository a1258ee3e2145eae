"""
Audit log rows. Written by ``EventStore`` alongside every mutation and
never changed afterwards.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, DateTime, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from lyceum.kernel.models.base import Base, enum_value, generate_uuid, utcnow


class EventType(str, Enum):
    # Accounts
    USER_REGISTERED = "user.registered"
    USER_LOGGED_IN = "user.logged_in"
    USER_LOGGED_OUT = "user.logged_out"
    USER_UPDATED = "user.updated"
    USER_ROLE_CHANGED = "user.role_changed"

    # Lecture catalogue
    LECTURE_CREATED = "lecture.created"
    LECTURE_UPDATED = "lecture.updated"
    LECTURE_DELETED = "lecture.deleted"
    PREREQUISITE_ADDED = "lecture.prerequisite_added"
    PREREQUISITE_UPDATED = "lecture.prerequisite_updated"
    PREREQUISITE_REMOVED = "lecture.prerequisite_removed"
    ENTITY_LINKED = "lecture.entity_linked"
    ENTITY_LINK_UPDATED = "lecture.entity_link_updated"
    ENTITY_UNLINKED = "lecture.entity_unlinked"

    # Learner progress
    PROGRESS_CREATED = "progress.created"
    PROGRESS_TRANSITIONED = "progress.transitioned"
    PROGRESS_VIEWED = "progress.viewed"
    REFLECTION_SUBMITTED = "reflection.submitted"
    REFLECTION_UPDATED = "reflection.updated"
    MASTERY_EVALUATED = "mastery.evaluated"

    # Knowledge graph
    ENTITY_CREATED = "entity.created"
    ENTITY_UPDATED = "entity.updated"
    ENTITY_DELETED = "entity.deleted"
    RELATION_CREATED = "relation.created"
    RELATION_UPDATED = "relation.updated"
    RELATION_DELETED = "relation.deleted"


class EventLog(Base):
    __tablename__ = "event_logs"
    __table_args__ = (
        Index("ix_event_logs_entity", "entity_type", "entity_id"),
        Index("ix_event_logs_user_time", "user_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=generate_uuid)
    event_type: Mapped[str] = mapped_column(String(100), index=True)
    entity_type: Mapped[str] = mapped_column(String(50))
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid(), index=True)
    # None for system events
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(), nullable=True, index=True)
    payload: Mapped[dict] = mapped_column(JSON, default=dict)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True
    )

    def __repr__(self) -> str:
        return f"<EventLog {enum_value(self.event_type)} {self.entity_type}:{self.entity_id}>"

"""
Per-user, per-lecture progress and the reflections submitted along the way.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from lyceum.kernel.models.base import Base, TimestampMixin, generate_uuid


class ProgressStatus(str, Enum):
    """Learner stage for a lecture, in workflow order."""
    LOCKED = "LOCKED"
    READY = "READY"
    STARTED = "STARTED"
    WATCHED = "WATCHED"
    INITIAL_REFLECTION = "INITIAL_REFLECTION"
    MASTERY_TESTING = "MASTERY_TESTING"
    MASTERED = "MASTERED"


class PromptType(str, Enum):
    """Category of reflection."""
    PRE_LECTURE = "pre-lecture"
    INITIAL = "initial"
    MASTERY = "mastery"
    DISCUSSION = "discussion"


class ReflectionStatus(str, Enum):
    SUBMITTED = "SUBMITTED"
    EVALUATED = "EVALUATED"
    MASTERY_ACHIEVED = "MASTERY_ACHIEVED"


class Progress(Base, TimestampMixin):
    """Where a user stands on one lecture."""

    __tablename__ = "progress"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    lecture_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("lectures.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[ProgressStatus] = mapped_column(
        String(30),
        default=ProgressStatus.LOCKED,
        nullable=False,
    )
    last_viewed: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    decay_factor: Mapped[float] = mapped_column(Float, default=1.0, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "lecture_id", name="uq_progress_user_lecture"),
    )


class Reflection(Base, TimestampMixin):
    """Free-text reflection written by a learner at a workflow stage."""

    __tablename__ = "reflections"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    lecture_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("lectures.id", ondelete="CASCADE"),
        nullable=False,
    )
    prompt_type: Mapped[PromptType] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    word_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    ai_evaluation: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    status: Mapped[ReflectionStatus] = mapped_column(
        String(30),
        default=ReflectionStatus.SUBMITTED,
        nullable=False,
    )
    score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    __table_args__ = (
        Index("ix_reflections_user_lecture_type", "user_id", "lecture_id", "prompt_type"),
    )

"""
Lecture catalogue and prerequisite edges between lectures.
"""

import uuid
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from lyceum.kernel.models.base import Base, TimestampMixin, generate_uuid


class ContentType(str, Enum):
    """Media type of a lecture's content."""
    VIDEO = "video"
    AUDIO = "audio"
    TEXT = "text"
    MIXED = "mixed"


class Lecture(Base, TimestampMixin):
    """A lecture in the curriculum."""

    __tablename__ = "lectures"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    content_url: Mapped[str] = mapped_column(String(1000), nullable=False)
    lecturer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    content_type: Mapped[ContentType] = mapped_column(
        String(20),
        default=ContentType.VIDEO,
        nullable=False,
    )
    category: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    embed_allowed: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    source_attribution: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Reflection prompts shown at each stage
    pre_lecture_prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    initial_prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    mastery_prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    evaluation_prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    discussion_prompts: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        CheckConstraint('"order" >= 0', name="ck_lectures_order_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Lecture {self.title}>"


class LecturePrerequisite(Base, TimestampMixin):
    """Directed edge: ``lecture_id`` requires ``prerequisite_lecture_id``."""

    __tablename__ = "lecture_prerequisites"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    lecture_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("lectures.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    prerequisite_lecture_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("lectures.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    is_required: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    importance_level: Mapped[int] = mapped_column(Integer, default=3, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "lecture_id",
            "prerequisite_lecture_id",
            name="uq_lecture_prerequisite",
        ),
        CheckConstraint(
            "importance_level >= 1 AND importance_level <= 5",
            name="ck_prerequisite_importance_range",
        ),
    )

"""
Philosophical entities, the relations between them, and their links to lectures.
"""

import uuid
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
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


class EntityType(str, Enum):
    PHILOSOPHER = "Philosopher"
    CONCEPT = "PhilosophicalConcept"
    BRANCH = "Branch"
    MOVEMENT = "Movement"
    PROBLEMATIC = "Problematic"
    ERA = "Era"


class RelationType(str, Enum):
    """Kinds of relation between two philosophical entities."""
    HIERARCHICAL = "HIERARCHICAL"  # source is a prerequisite of target
    DEVELOPMENT = "DEVELOPMENT"
    INFLUENCE = "INFLUENCE"
    CRITIQUE = "CRITIQUE"
    CONTRAST = "CONTRAST"
    SYNTHESIS = "SYNTHESIS"
    ADDRESSES_PROBLEMATIC = "ADDRESSES_PROBLEMATIC"


class LectureEntityRelationType(str, Enum):
    """How a lecture treats an entity."""
    INTRODUCES = "INTRODUCES"
    EXPANDS = "EXPANDS"
    CRITIQUES = "CRITIQUES"
    APPLIES = "APPLIES"
    CONTEXTUALIZES = "CONTEXTUALIZES"
    COMPARES = "COMPARES"


class PhilosophicalEntity(Base, TimestampMixin):
    """A philosopher, concept, branch, movement, problematic or era."""

    __tablename__ = "philosophical_entities"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    type: Mapped[EntityType] = mapped_column(String(40), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Dates are years; negative values are BCE
    start_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    end_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Philosopher
    birthplace: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    nationality: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    biography: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Concept
    ontological_position: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    primary_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    key_terms: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    # Problematic
    central_question: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    still_relevant: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    # Branch / Movement / Era
    scope: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    geographical_focus: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    historical_context: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    lecture_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("lectures.id", ondelete="SET NULL"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<PhilosophicalEntity {self.type}:{self.name}>"


class PhilosophicalRelation(Base, TimestampMixin):
    """Directed, typed relation between two entities."""

    __tablename__ = "philosophical_relations"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    source_entity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("philosophical_entities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    target_entity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("philosophical_entities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    relation_types: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    importance: Mapped[int] = mapped_column(Integer, default=3, nullable=False)


class LectureEntityRelation(Base, TimestampMixin):
    """Link between a lecture and an entity it covers."""

    __tablename__ = "lecture_entity_relations"

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
    entity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("philosophical_entities.id", ondelete="CASCADE"),
        nullable=False,
    )
    relation_type: Mapped[LectureEntityRelationType] = mapped_column(
        String(30),
        default=LectureEntityRelationType.INTRODUCES,
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint(
            "lecture_id",
            "entity_id",
            "relation_type",
            name="uq_lecture_entity_relation",
        ),
    )

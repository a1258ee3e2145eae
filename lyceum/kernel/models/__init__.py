"""
Kernel Data Models

SQLAlchemy models for users, the lecture catalogue, learner progress and the
philosophical knowledge graph.
"""

from lyceum.kernel.models.base import Base, TimestampMixin, generate_uuid, enum_value
from lyceum.kernel.models.user import User, UserRole, RefreshToken, STAFF_ROLES
from lyceum.kernel.models.lecture import Lecture, LecturePrerequisite, ContentType
from lyceum.kernel.models.progress import (
    Progress,
    ProgressStatus,
    PromptType,
    Reflection,
    ReflectionStatus,
)
from lyceum.kernel.models.philosophy import (
    EntityType,
    LectureEntityRelation,
    LectureEntityRelationType,
    PhilosophicalEntity,
    PhilosophicalRelation,
    RelationType,
)
from lyceum.kernel.models.event_log import EventLog, EventType

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "generate_uuid",
    "enum_value",
    # User
    "User",
    "UserRole",
    "RefreshToken",
    "STAFF_ROLES",
    # Lectures
    "Lecture",
    "LecturePrerequisite",
    "ContentType",
    # Progress
    "Progress",
    "ProgressStatus",
    "PromptType",
    "Reflection",
    "ReflectionStatus",
    # Knowledge graph
    "EntityType",
    "LectureEntityRelation",
    "LectureEntityRelationType",
    "PhilosophicalEntity",
    "PhilosophicalRelation",
    "RelationType",
    # Event Log
    "EventLog",
    "EventType",
]

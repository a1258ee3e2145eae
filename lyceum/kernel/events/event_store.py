"""
Append-only audit log.

Services call ``EventStore.log`` with the session that carries their change,
so an audit row commits or rolls back together with the mutation it records.
Rows are never updated or deleted.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lyceum.kernel.models.event_log import EventLog, EventType


def to_json_safe(value: Any) -> Any:
    """Recursively turn UUIDs, datetimes and enums into JSON column values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: to_json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_json_safe(item) for item in value]
    return value


class EventStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def log(
        self,
        event_type: EventType,
        entity_type: str,
        entity_id: uuid.UUID,
        user_id: Optional[uuid.UUID] = None,
        payload: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> EventLog:
        """
        Stage an audit row in the current session.

        Nothing is flushed here; the row is written with the rest of the
        caller's unit of work.

        Args:
            event_type: What happened
            entity_type: Kind of record affected ("lecture", "progress", ...)
            entity_id: Primary key of that record
            user_id: Acting user, None for system events
            payload: Event details; UUIDs, datetimes and enums are converted
        """
        entry = EventLog(
            event_type=event_type.value,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            payload=to_json_safe(payload or {}),
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.session.add(entry)
        return entry

    async def get_entity_history(
        self,
        entity_type: str,
        entity_id: uuid.UUID,
        event_types: Optional[Sequence[EventType]] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[EventLog]:
        """Audit rows for one record, newest first."""
        query = select(EventLog).where(
            EventLog.entity_type == entity_type,
            EventLog.entity_id == entity_id,
        )
        if event_types:
            query = query.where(EventLog.event_type.in_([t.value for t in event_types]))

        query = query.order_by(EventLog.created_at.desc()).offset(offset).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

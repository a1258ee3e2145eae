"""
Response envelopes shared by every router.
"""

import math
import uuid
from datetime import datetime
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel

ItemT = TypeVar("ItemT")


class SuccessResponse(BaseModel):
    message: str
    data: Optional[Any] = None


class PaginatedResponse(BaseModel, Generic[ItemT]):
    """One page of a list endpoint, with enough metadata to fetch the next."""

    items: List[ItemT]
    total: int
    page: int = 1
    page_size: int = 10
    pages: int = 0
    has_more: bool = False

    @classmethod
    def build(cls, items: List[ItemT], total: int, page: int, page_size: int) -> "PaginatedResponse[ItemT]":
        pages = math.ceil(total / page_size) if page_size else 0
        return cls(
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            pages=pages,
            has_more=page < pages,
        )


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    database: str = "connected"


class EventLogResponse(BaseModel):
    """An audit log row as returned by the history endpoints."""

    id: uuid.UUID
    event_type: str
    entity_type: str
    entity_id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    payload: dict
    created_at: datetime

    class Config:
        from_attributes = True

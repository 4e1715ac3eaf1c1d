"""Lifecycle event types published by the problem store."""
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from problem_search.documents import DocId, SourceDocument


class EventType(str, Enum):
    """Problem lifecycle event types."""

    PROBLEM_ADDED = "problem.added"
    PROBLEM_EDITED = "problem.edited"
    PROBLEM_DELETED = "problem.deleted"


Topic = Literal["problems", "system"]


class DomainEvent(BaseModel):
    """Typed lifecycle notification for a single problem.

    Attributes:
        id: Unique event identifier (UUID).
        type: Event type indicating the mutation.
        timestamp: Event timestamp in UTC.
        topic: Event topic for routing to subscribers.
        tenant_id: Domain owning the problem.
        doc_id: Problem document id.
        document: Problem payload; absent for deletions.
    """

    id: str = Field(description="Unique event identifier (UUID)")
    type: EventType = Field(description="Event type")
    timestamp: datetime = Field(description="Event timestamp (UTC)")
    topic: Topic = Field(default="problems", description="Event topic for routing")
    tenant_id: str = Field(description="Owning domain")
    doc_id: DocId = Field(description="Problem document id")
    document: SourceDocument | None = Field(default=None, description="Problem payload")

"""
Plan mode data models.

Defines PlanIdea, PlanSession and PlanProgress for keyword research runs.
"""

from datetime import datetime, timezone
from typing import List, Literal, Optional
from uuid import UUID, uuid4
from pydantic import BaseModel, Field, field_serializer


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PlanIdea(BaseModel):
    """Research output for one keyword."""

    id: UUID = Field(default_factory=uuid4)
    keyword: str
    topic: str = ""
    outline: str = ""
    status: Literal["pending", "completed", "failed"] = "pending"
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)

    @field_serializer("id")
    def serialize_uuid(self, value: UUID) -> str:
        """Serialize UUID to string."""
        return str(value)


class PlanSession(BaseModel):
    """A plan-mode run over a list of keywords."""

    id: UUID = Field(default_factory=uuid4)
    keywords: List[str]
    ideas: List[PlanIdea] = Field(default_factory=list)
    total_keywords: int
    completed_count: int = 0
    failed_count: int = 0
    status: Literal["running", "completed", "cancelled"] = "running"
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None

    @field_serializer("id")
    def serialize_uuid(self, value: UUID) -> str:
        """Serialize UUID to string."""
        return str(value)


class PlanProgress(BaseModel):
    """Progress snapshot passed to plan-mode callbacks."""

    current: int
    total: int
    current_keyword: str
    status: Literal["processing", "completed", "failed"]
    completed_ideas: int = 0
    last_error: Optional[str] = None

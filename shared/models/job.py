"""
Job-related data models.

Defines Job, PartialOutputs and QualityScore for tracking a job's progress
through the generation steps.
"""

from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional
from uuid import UUID, uuid4
from pydantic import BaseModel, Field, field_serializer

from .scene import SceneWarning

JobStatus = Literal["pending", "processing", "completed", "failed"]

FIRST_BATCH_STEP = 2
LAST_STEP = 6


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PartialOutputs(BaseModel):
    """Accumulated text of the batched steps, saved after every batch."""

    outline: str = ""
    script: str = ""


class QualityScore(BaseModel):
    """Share of scenes whose voiceover landed inside the tolerance window."""

    total_scenes: int = Field(ge=0)
    within_target: int = Field(ge=0)
    within_tolerance: int = Field(default=0, ge=0, description="Always 0: scenes are either in window or flagged")
    out_of_tolerance: int = Field(ge=0)
    score: int = Field(ge=0, le=100, description="Percentage 0-100")

    @classmethod
    def from_warnings(cls, total_scenes: int, warning_count: int) -> "QualityScore":
        """Score = round((total - warnings) / total * 100), floored at 0."""
        within = max(total_scenes - warning_count, 0)
        score = round(within / total_scenes * 100) if total_scenes > 0 else 0
        return cls(
            total_scenes=total_scenes,
            within_target=within,
            within_tolerance=0,
            out_of_tolerance=warning_count,
            score=score,
        )


class Job(BaseModel):
    """One queued unit of work: an input text run through steps 2-6."""

    id: UUID = Field(default_factory=uuid4)
    input_text: str
    status: JobStatus = "pending"
    current_step: int = Field(default=FIRST_BATCH_STEP, ge=FIRST_BATCH_STEP, le=LAST_STEP)
    completed_batches: int = Field(default=0, ge=0, description="Batches finished within current_step")
    partial_outputs: PartialOutputs = Field(default_factory=PartialOutputs)
    outputs: Dict[int, str] = Field(default_factory=dict, description="Final text per step")
    warnings: List[SceneWarning] = Field(default_factory=list)
    quality_score: Optional[QualityScore] = None
    error: Optional[str] = None
    attempts: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_serializer("id")
    def serialize_uuid(self, value: UUID) -> str:
        """Serialize UUID to string."""
        return str(value)

    @field_serializer("created_at", "updated_at")
    def serialize_datetime(self, value: Optional[datetime]) -> Optional[str]:
        """Serialize datetime to ISO format string."""
        return value.isoformat() if value else None

    def touch(self) -> None:
        self.updated_at = _utcnow()

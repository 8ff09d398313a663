"""
Checkpoint data models.

CheckpointState is persisted with camelCase keys:
{jobs, processedJobs, config: {sceneCount, wordMin, wordMax, delaySeconds}, lastUpdated, version}
"""

from typing import List
from pydantic import BaseModel, ConfigDict, Field

from .job import Job

CHECKPOINT_VERSION = "1.0"


class RunConfig(BaseModel):
    """Run parameters needed to resume a queue."""

    model_config = ConfigDict(populate_by_name=True)

    scene_count: int = Field(alias="sceneCount", ge=1)
    word_min: int = Field(alias="wordMin", ge=0)
    word_max: int = Field(alias="wordMax", ge=0)
    delay_seconds: float = Field(default=0, alias="delaySeconds", ge=0)

    @property
    def target_words(self) -> int:
        return (self.word_min + self.word_max) // 2

    @property
    def tolerance(self) -> int:
        return (self.word_max - self.word_min) // 2

    @classmethod
    def from_window(cls, scene_count: int, target: int, tolerance: int, delay_seconds: float = 0) -> "RunConfig":
        return cls(
            scene_count=scene_count,
            word_min=target - tolerance,
            word_max=target + tolerance,
            delay_seconds=delay_seconds,
        )


class CheckpointState(BaseModel):
    """Snapshot of a queue run, overwritten on every save."""

    model_config = ConfigDict(populate_by_name=True)

    jobs: List[Job] = Field(default_factory=list, description="Pending and in-flight jobs")
    processed_jobs: List[Job] = Field(default_factory=list, alias="processedJobs")
    config: RunConfig
    last_updated: int = Field(alias="lastUpdated", description="Epoch milliseconds")
    version: str = CHECKPOINT_VERSION

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)

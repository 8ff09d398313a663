"""
Scene validation data models.

Defines Scene, SceneValidation, ValidationReport, SceneWarning, FixedScene,
QualityMetrics and BatchResult.
"""

from typing import List, Literal, Optional
from pydantic import BaseModel, Field

SceneIssue = Literal[
    "empty_scene",
    "invalid_format",
    "missing_visual",
    "visual_too_short",
    "missing_voiceover",
    "word_count_out_of_range",
]


class Scene(BaseModel):
    """One parsed structural unit of generated content."""

    index: int = Field(ge=1, description="1-based scene number, unique within a job")
    title: str = ""
    visual: str = ""
    voiceover: str = ""
    word_count: int = Field(default=0, ge=0, description="Recomputed from voiceover, never provider-reported")


class SceneValidation(BaseModel):
    """Structural validation of a single scene block."""

    scene: Optional[Scene] = None
    is_valid: bool
    issues: List[SceneIssue] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)


class ValidationReport(BaseModel):
    """Validation of a whole text against an expected index range."""

    total_expected: int
    total_found: int
    valid_scenes: List[Scene] = Field(default_factory=list)
    invalid_scenes: List[SceneValidation] = Field(default_factory=list)
    missing_indices: List[int] = Field(default_factory=list)
    completion_rate: int = Field(ge=0, le=100, description="round(valid / expected * 100)")
    reconstructed_text: str = ""


class SceneWarning(BaseModel):
    """A scene whose voiceover count falls outside target±tolerance."""

    scene_index: int
    actual: int
    target: int
    tolerance: int
    diff: int = Field(description="Signed distance outside the window; -target when voiceover is missing")


class FixedScene(BaseModel):
    """Outcome of an auto-fix attempt for one scene."""

    scene_index: int
    original_content: str = ""
    fixed_content: str = ""
    fix_reasons: List[str] = Field(default_factory=list)
    is_valid_after_fix: bool = False


class QualityMetrics(BaseModel):
    """Auto-fix summary for a batch."""

    total_fixed: int = 0
    still_invalid: List[int] = Field(default_factory=list)
    recovery_attempts: int = 0
    completion_rate: int = 0
    fix_reasons: List[str] = Field(default_factory=list)


BatchState = Literal["drafting", "validating", "accepted", "retrying", "recovering", "exhausted"]


class BatchResult(BaseModel):
    """Outcome of one orchestrator call for one scene range."""

    content: str = ""
    warnings: List[SceneWarning] = Field(default_factory=list)
    start_index: int = 0
    end_index: int = 0
    attempts: int = 0
    final_state: BatchState = "accepted"
    recovered_indices: List[int] = Field(default_factory=list)
    missing_indices: List[int] = Field(default_factory=list, description="Still missing after recovery")
    end_of_step: bool = Field(default=False, description="Range starts past the scene count")
    fixed_scenes: List[int] = Field(default_factory=list)
    still_invalid: List[int] = Field(default_factory=list)
    quality_metrics: Optional[QualityMetrics] = None

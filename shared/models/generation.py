"""
Provider request/response models.

Defines the backend-agnostic GenerationRequest/GenerationResponse contract
plus the model registry entries (ModelProfile, StepBinding).
"""

from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

from .credential import Provider

FinishReason = Literal["stop", "length", "content_filter", "error"]

ModelStrength = Literal["json", "creative", "logic", "fast", "long-context", "vision"]


class GenerationRequest(BaseModel):
    """Single generation call."""

    model_config = ConfigDict(frozen=True)

    system_instruction: str
    user_message: str
    use_search: bool = Field(default=False, description="Ask for search-grounded output where supported")
    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    max_tokens: Optional[int] = Field(default=None, gt=0)


class TokenUsage(BaseModel):
    """Token accounting reported by the provider."""

    model_config = ConfigDict(frozen=True)

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class GenerationResponse(BaseModel):
    """Result of a single generation call."""

    model_config = ConfigDict(frozen=True)

    content: str
    model: str
    usage: Optional[TokenUsage] = None
    finish_reason: FinishReason = "stop"


class ModelProfile(BaseModel):
    """Registry entry describing one model."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Registry key, e.g. 'deepseek-chat'")
    name: str
    provider: Provider
    api_model_id: str = Field(description="Identifier sent to the provider API")
    context_window: int
    max_output_tokens: int
    strengths: List[ModelStrength] = Field(default_factory=list)
    supports_search: bool = False
    base_url: Optional[str] = None


class StepBinding(BaseModel):
    """Which model serves a pipeline step, with an optional fallback."""

    step_id: int = Field(ge=1, le=6)
    model_id: str
    fallback_model_id: Optional[str] = None

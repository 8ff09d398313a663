"""
Data models for the batch generation pipeline.

This module exports all Pydantic models used across pipeline modules.
"""

from .credential import Credential, CredentialStatus, PoolStats, Provider
from .generation import (
    GenerationRequest,
    GenerationResponse,
    TokenUsage,
    FinishReason,
    ModelProfile,
    StepBinding
)
from .scene import (
    Scene,
    SceneIssue,
    SceneValidation,
    ValidationReport,
    SceneWarning,
    FixedScene,
    QualityMetrics,
    BatchResult,
    BatchState
)
from .job import Job, JobStatus, PartialOutputs, QualityScore
from .checkpoint import CheckpointState, RunConfig, CHECKPOINT_VERSION
from .plan import PlanIdea, PlanSession, PlanProgress

__all__ = [
    # Credential models
    "Credential",
    "CredentialStatus",
    "PoolStats",
    "Provider",
    # Generation models
    "GenerationRequest",
    "GenerationResponse",
    "TokenUsage",
    "FinishReason",
    "ModelProfile",
    "StepBinding",
    # Scene models
    "Scene",
    "SceneIssue",
    "SceneValidation",
    "ValidationReport",
    "SceneWarning",
    "FixedScene",
    "QualityMetrics",
    "BatchResult",
    "BatchState",
    # Job models
    "Job",
    "JobStatus",
    "PartialOutputs",
    "QualityScore",
    # Checkpoint models
    "CheckpointState",
    "RunConfig",
    "CHECKPOINT_VERSION",
    # Plan models
    "PlanIdea",
    "PlanSession",
    "PlanProgress",
]

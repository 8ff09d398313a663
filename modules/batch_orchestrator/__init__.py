"""
Batch Orchestrator module exports.

Public API for per-batch generation, prompt lookup and chunk helpers.
"""

from .orchestrator import BatchOrchestrator, ProgressCallback, END_OF_OUTLINE, END_OF_SCRIPT
from .prompts import (
    DEFAULT_SYSTEM_PROMPTS,
    STEP_PROMPT_IDS,
    PromptLibrary,
    StaticPromptLibrary,
    system_prompt_for_step
)
from .chunking import (
    batch_range,
    merge_prompt_jsons,
    merge_prompt_values,
    split_script_into_chunks,
    total_batches
)

__all__ = [
    "BatchOrchestrator",
    "ProgressCallback",
    "END_OF_OUTLINE",
    "END_OF_SCRIPT",
    "DEFAULT_SYSTEM_PROMPTS",
    "STEP_PROMPT_IDS",
    "PromptLibrary",
    "StaticPromptLibrary",
    "system_prompt_for_step",
    "batch_range",
    "merge_prompt_jsons",
    "merge_prompt_values",
    "split_script_into_chunks",
    "total_batches",
]

"""
Run sizing heuristics.

Derives batch size, parallelism, delays and retry budgets from the scene
count and the number of usable credentials, and estimates call volume
and wall-clock time for a queue.
"""

import math
from typing import List

from pydantic import BaseModel, Field

AVG_CALL_SECONDS = 4.0
MAX_PARALLEL_JOBS = 3


class BatchOptimalConfig(BaseModel):
    """Recommended settings for a run."""

    scenes_per_batch: int
    parallel_jobs: int
    delay_between_batches_ms: int
    delay_between_jobs_ms: int
    max_retries: int
    context_window_size: int
    tolerance: int


class ProcessingEstimate(BaseModel):
    total_minutes: int
    formatted_time: str


class WorkloadCheck(BaseModel):
    can_proceed: bool
    warnings: List[str] = Field(default_factory=list)


def calculate_optimal_config(scene_count: int, key_count: int = 1) -> BatchOptimalConfig:
    """Settings scaled to script length and credential count."""
    if scene_count >= 200:
        scenes_per_batch = 5
    elif scene_count >= 100:
        scenes_per_batch = 4
    else:
        scenes_per_batch = 3

    if key_count >= 5:
        batch_delay = 300
    elif key_count >= 3:
        batch_delay = 500
    else:
        batch_delay = 1000

    return BatchOptimalConfig(
        scenes_per_batch=scenes_per_batch,
        parallel_jobs=min(key_count, 5, MAX_PARALLEL_JOBS),
        delay_between_batches_ms=batch_delay,
        delay_between_jobs_ms=2000 if key_count >= 5 else 5000,
        max_retries=7 if scene_count >= 200 else 6 if scene_count >= 100 else 5,
        context_window_size=min(4000, max(2000, scene_count * 10)),
        tolerance=4 if scene_count >= 200 else 3
    )


def estimate_api_calls(scene_count: int, scenes_per_batch: int) -> int:
    """Calls for one script: one per batch in steps 2-4, plus steps 5 and 6."""
    batches = math.ceil(scene_count / scenes_per_batch)
    return batches * 3 + 2


def format_duration(total_minutes: int) -> str:
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours}h {minutes}m" if hours > 0 else f"{minutes}m"


def estimate_processing_time(script_count: int, scene_count: int, key_count: int = 1) -> ProcessingEstimate:
    config = calculate_optimal_config(scene_count, key_count)
    total_calls = estimate_api_calls(scene_count, config.scenes_per_batch) * script_count

    call_ms = total_calls * AVG_CALL_SECONDS * 1000
    batches = math.ceil(scene_count / config.scenes_per_batch)
    delay_ms = script_count * (config.delay_between_jobs_ms + batches * config.delay_between_batches_ms)

    parallel = max(min(config.parallel_jobs, key_count), 1)
    total_minutes = math.ceil((call_ms + delay_ms) / parallel / 60000)
    return ProcessingEstimate(total_minutes=total_minutes, formatted_time=format_duration(total_minutes))


def validate_workload(script_count: int, scene_count: int, key_count: int) -> WorkloadCheck:
    """Warnings for workloads likely to hit rate limits or run for hours."""
    warnings: List[str] = []
    total_scenes = script_count * scene_count
    total_calls = estimate_api_calls(scene_count, 3) * script_count

    if key_count < 3 and total_calls > 500:
        warnings.append(f"Use at least 3 API keys for {total_calls} calls")
    if key_count < 5 and total_calls > 1000:
        warnings.append(f"Use at least 5 API keys for {total_calls} calls")
    if total_scenes > 3000:
        warnings.append(f"{total_scenes} scenes may cause memory pressure; 8GB+ RAM recommended")

    estimate = estimate_processing_time(script_count, scene_count, key_count)
    if estimate.total_minutes >= 60:
        warnings.append(f"Estimated time: {estimate.formatted_time}. Make sure the connection is stable.")

    return WorkloadCheck(can_proceed=key_count > 0, warnings=warnings)

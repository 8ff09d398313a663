"""
Scheduler module exports.

Public API for the job queue, per-job pipeline, plan mode, export and
run sizing.
"""

from .scheduler import JobScheduler, SchedulerReport, partition
from .pipeline import JobPipeline, CheckpointCallback
from .planner import PlanService, export_to_text
from .export import export_job, quality_report
from .optimizer import (
    BatchOptimalConfig,
    ProcessingEstimate,
    WorkloadCheck,
    calculate_optimal_config,
    estimate_api_calls,
    estimate_processing_time,
    validate_workload
)

__all__ = [
    "JobScheduler",
    "SchedulerReport",
    "partition",
    "JobPipeline",
    "CheckpointCallback",
    "PlanService",
    "export_to_text",
    "export_job",
    "quality_report",
    "BatchOptimalConfig",
    "ProcessingEstimate",
    "WorkloadCheck",
    "calculate_optimal_config",
    "estimate_api_calls",
    "estimate_processing_time",
    "validate_workload",
]

"""
Command-line entry point.

  script-factory run jobs.txt [--resume | --discard] [--output DIR]
  script-factory plan keywords.txt [--concurrent N] [--output FILE]
  script-factory keys check
  script-factory estimate --scripts 10 --scenes 30 [--keys 3]
"""

import argparse
import asyncio
import signal
import sys
from datetime import date
from pathlib import Path
from typing import List, NamedTuple, Optional

from dotenv import load_dotenv

from shared.config import settings
from shared.error_tracking import error_tracker
from shared.errors import CircuitBreakerOpenError, PipelineError
from shared.logging import get_logger
from shared.models.checkpoint import RunConfig
from shared.validation import parse_job_inputs, validate_input_text, validate_scene_count, validate_word_window

from modules.auto_fix.engine import AutoFixEngine
from modules.batch_orchestrator.orchestrator import BatchOrchestrator
from modules.batch_orchestrator.prompts import StaticPromptLibrary
from modules.checkpoint_store.store import CheckpointStore
from modules.credential_pool.health import check_all
from modules.credential_pool.pool import CredentialPools
from modules.providers.factory import AdapterFactory
from modules.scene_validator.language import get_profile

from .export import export_job
from .optimizer import calculate_optimal_config, estimate_api_calls, estimate_processing_time, validate_workload
from .pipeline import JobPipeline
from .planner import PlanService, export_to_text
from .scheduler import JobScheduler, SchedulerReport

logger = get_logger("scheduler.cli")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NEEDS_DECISION = 2
EXIT_PAUSED = 3


class Components(NamedTuple):
    pools: CredentialPools
    factory: AdapterFactory
    orchestrator: BatchOrchestrator
    store: CheckpointStore


def build_components() -> Components:
    """Wire pools, adapters and orchestrator from settings."""
    profile = get_profile(settings.language)
    pools = CredentialPools.from_settings()
    factory = AdapterFactory.from_settings(pools)
    auto_fix = AutoFixEngine(factory, profile=profile, tracker=error_tracker)
    orchestrator = BatchOrchestrator(
        factory,
        StaticPromptLibrary.from_settings(),
        profile=profile,
        tracker=error_tracker,
        auto_fix=auto_fix,
        progress=_print_progress
    )
    return Components(pools, factory, orchestrator, CheckpointStore.from_settings())


def _print_progress(step: int, message: str, attempt: int) -> None:
    print(f"  [step {step}] {message}" + (f" (attempt {attempt})" if attempt > 1 else ""))


def _install_cancel_handler(callback) -> None:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, callback)
    except NotImplementedError:
        logger.debug("Signal handlers unsupported; Ctrl+C will abort without saving")


def _summarize(report: SchedulerReport) -> None:
    print(
        f"Done: {report.completed} completed, {report.failed} failed, "
        f"{report.remaining} remaining ({report.groups_run} groups)"
    )


async def run_queue(args: argparse.Namespace) -> int:
    components = build_components()
    store = components.store
    delay = args.delay if args.delay is not None else settings.inter_chunk_delay_seconds
    run_config = RunConfig.from_window(
        args.scene_count, args.target_words, args.tolerance, delay_seconds=delay
    )
    pipeline = JobPipeline(components.orchestrator, auto_fix=settings.auto_fix_enabled)
    scheduler = JobScheduler(pipeline, run_config=run_config, store=store, tracker=error_tracker)

    if store.has_resumable():
        state = store.load()
        if args.resume:
            scheduler.restore(state)
            print(f"Resuming {len(state.jobs)} pending jobs saved {store.age_of(state)}")
        elif args.discard:
            store.clear()
        else:
            print(
                f"Found a checkpoint from {store.age_of(state)} with {len(state.jobs)} pending jobs. "
                "Re-run with --resume or --discard."
            )
            return EXIT_NEEDS_DECISION
    elif args.resume:
        print("No resumable checkpoint found.")
        return EXIT_ERROR

    if args.input:
        inputs = parse_job_inputs(Path(args.input).read_text(encoding="utf-8"))
        for text in inputs:
            validate_input_text(text)
        scheduler.enqueue(inputs)

    if not scheduler.queue:
        print("Queue is empty.")
        return EXIT_ERROR

    _install_cancel_handler(scheduler.cancel)
    exit_code = EXIT_OK
    try:
        report = await scheduler.run(max_concurrency=args.concurrency, inter_chunk_delay=args.delay)
    except CircuitBreakerOpenError as e:
        report = e.report
        print(f"PAUSED: {e}. Progress saved; resume later with --resume.")
        print(error_tracker.format_for_display())
        exit_code = EXIT_PAUSED

    for job in scheduler.processed:
        if job.status == "completed":
            print(f"Exported {export_job(job, args.output)}")
        else:
            print(f"Job {job.id} failed: {job.error}")

    if report.cancelled:
        print("Cancelled. Progress saved; resume later with --resume.")
    elif exit_code == EXIT_OK and report.remaining == 0:
        store.clear()
    _summarize(report)
    return exit_code


async def run_plan(args: argparse.Namespace) -> int:
    components = build_components()
    keywords = Path(args.keywords).read_text(encoding="utf-8").splitlines()
    service = PlanService(components.orchestrator)
    _install_cancel_handler(service.cancel)

    def on_progress(progress) -> None:
        print(f"  [{progress.current}/{progress.total}] {progress.current_keyword}: {progress.status}")

    if args.concurrent > 0:
        session = await service.generate_ideas_concurrent(keywords, args.concurrent, on_progress=on_progress)
    else:
        session = await service.generate_ideas(keywords, on_progress=on_progress)

    output = Path(args.output or f"plan-ideas-{date.today().isoformat()}.txt")
    output.write_text(export_to_text(session), encoding="utf-8")
    print(f"{session.completed_count} ideas, {session.failed_count} failed; wrote {output}")
    return EXIT_OK


async def run_keys_check(args: argparse.Namespace) -> int:
    pools = CredentialPools.from_settings()
    if not pools.providers():
        print("No pooled API keys configured.")
        return EXIT_ERROR
    for provider in pools.providers():
        counts = await check_all(pools.get(provider))
        print(f"{provider}: " + ", ".join(f"{status}={count}" for status, count in counts.items()))
    return EXIT_OK


def run_estimate(args: argparse.Namespace) -> int:
    key_count = args.keys
    if key_count is None:
        pools = CredentialPools.from_settings()
        key_count = sum(len(pools.get(p)) for p in pools.providers())

    config = calculate_optimal_config(args.scenes, key_count)
    estimate = estimate_processing_time(args.scripts, args.scenes, key_count)
    check = validate_workload(args.scripts, args.scenes, key_count)

    print(f"Scenes per batch: {config.scenes_per_batch}, parallel jobs: {config.parallel_jobs}")
    print(f"API calls per script: {estimate_api_calls(args.scenes, config.scenes_per_batch)}")
    print(f"Estimated time: {estimate.formatted_time}")
    for warning in check.warnings:
        print(f"Warning: {warning}")
    return EXIT_OK if check.can_proceed else EXIT_ERROR


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="script-factory",
        description="Batch-generate video scripts: outline, script, prompts, voiceover and metadata"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", help="Run a queue of jobs")
    run.add_argument("input", nargs="?", help="Input file; jobs separated by a line containing ---")
    decision = run.add_mutually_exclusive_group()
    decision.add_argument("--resume", action="store_true", help="Resume the saved queue")
    decision.add_argument("--discard", action="store_true", help="Discard the saved queue")
    run.add_argument("--output", default="output", help="Directory for exported archives")
    run.add_argument("--concurrency", type=int, default=settings.max_concurrent_jobs)
    run.add_argument("--delay", type=float,
                     help="Seconds between job groups (default: saved or configured delay)")
    run.add_argument("--scene-count", type=int, default=settings.scene_count)
    run.add_argument("--target-words", type=int, default=settings.target_words)
    run.add_argument("--tolerance", type=int, default=settings.word_tolerance)

    plan = commands.add_parser("plan", help="Research one idea per keyword")
    plan.add_argument("keywords", help="File with one keyword per line")
    plan.add_argument("--concurrent", type=int, default=0,
                      help="Keywords per concurrent chunk (0 runs sequentially)")
    plan.add_argument("--output", help="Export file")

    keys = commands.add_parser("keys", help="Credential pool commands")
    keys_commands = keys.add_subparsers(dest="keys_command", required=True)
    keys_commands.add_parser("check", help="Probe every pooled key")

    estimate = commands.add_parser("estimate", help="Estimate calls and time for a workload")
    estimate.add_argument("--scripts", type=int, required=True)
    estimate.add_argument("--scenes", type=int, default=settings.scene_count)
    estimate.add_argument("--keys", type=int, help="Key count (default: pooled keys from settings)")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    try:
        if args.command == "run":
            validate_scene_count(args.scene_count)
            validate_word_window(args.target_words, args.tolerance)
            return asyncio.run(run_queue(args))
        if args.command == "plan":
            return asyncio.run(run_plan(args))
        if args.command == "keys":
            return asyncio.run(run_keys_check(args))
        return run_estimate(args)
    except PipelineError as e:
        logger.error(f"Command failed: {e}", extra={"command": args.command})
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())

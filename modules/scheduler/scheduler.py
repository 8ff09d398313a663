"""
Queue scheduler.

Runs queued jobs in consecutive groups of `max_concurrency`, gathered on
one event loop. Each job retries on its own with exponential backoff and
resumes from its checkpoint. Two groups in a row in which every job
failed trip the circuit breaker.
"""

import asyncio
from typing import Iterable, List, Optional, Sequence

from pydantic import BaseModel

from shared.config import settings
from shared.error_tracking import ErrorTracker, error_tracker
from shared.errors import CircuitBreakerOpenError, JobFailedError, QueueFullError
from shared.logging import get_logger
from shared.models.checkpoint import CheckpointState, RunConfig
from shared.models.job import Job
from shared.retry import RetryPolicy, SleepFunc, retry_async

from modules.batch_orchestrator.orchestrator import ProgressCallback
from modules.checkpoint_store.store import CheckpointStore, now_ms

from .pipeline import JobPipeline

logger = get_logger("scheduler")

QUEUE_STEP = 0


class SchedulerReport(BaseModel):
    """Outcome of one scheduler run."""

    total_jobs: int
    completed: int = 0
    failed: int = 0
    remaining: int = 0
    groups_run: int = 0
    consecutive_failures: int = 0
    cancelled: bool = False
    breaker_tripped: bool = False


def partition(jobs: Sequence[Job], size: int) -> List[List[Job]]:
    """Consecutive groups of at most `size` jobs."""
    return [list(jobs[i:i + size]) for i in range(0, len(jobs), size)]


class JobScheduler:
    """Owns the job queue and runs it group by group."""

    def __init__(
        self,
        pipeline: JobPipeline,
        run_config: Optional[RunConfig] = None,
        store: Optional[CheckpointStore] = None,
        tracker: Optional[ErrorTracker] = None,
        policy: Optional[RetryPolicy] = None,
        max_queue_size: Optional[int] = None,
        breaker_threshold: Optional[int] = None,
        progress: Optional[ProgressCallback] = None,
        sleep: SleepFunc = asyncio.sleep
    ):
        self.pipeline = pipeline
        self.pipeline.checkpoint = self._checkpoint_job
        self.run_config = run_config or RunConfig.from_window(
            settings.scene_count, settings.target_words, settings.word_tolerance,
            delay_seconds=settings.inter_chunk_delay_seconds
        )
        self.store = store
        self.tracker = tracker or error_tracker
        self.policy = policy or RetryPolicy.for_jobs()
        self.max_queue_size = max_queue_size or settings.max_queue_size
        self.breaker_threshold = breaker_threshold or settings.circuit_breaker_threshold
        self.progress = progress
        self._sleep = sleep
        self.queue: List[Job] = []
        self.processed: List[Job] = []
        self._cancelled = False

    def enqueue(self, inputs: Iterable[str]) -> List[Job]:
        """
        Add one job per non-empty input text.

        Raises:
            QueueFullError: If the queue would exceed its size limit
        """
        texts = [text.strip() for text in inputs if text and text.strip()]
        if len(self.queue) + len(texts) > self.max_queue_size:
            raise QueueFullError(
                f"Queue limit is {self.max_queue_size} jobs; "
                f"{len(self.queue)} queued, {len(texts)} requested"
            )
        jobs = [Job(input_text=text) for text in texts]
        self.queue.extend(jobs)
        logger.info(f"Enqueued {len(jobs)} jobs", extra={"queue_size": len(self.queue)})
        return jobs

    def restore(self, state: CheckpointState) -> None:
        """Reload a saved queue; in-flight jobs go back to pending at their checkpoint."""
        self.queue = list(state.jobs)
        for job in self.queue:
            if job.status == "processing":
                job.status = "pending"
        self.processed = list(state.processed_jobs)
        self.run_config = state.config
        logger.info(
            "Restored queue from checkpoint",
            extra={"pending_jobs": len(self.queue), "processed_jobs": len(self.processed)}
        )

    def snapshot(self) -> CheckpointState:
        return CheckpointState(
            jobs=[job.model_copy(deep=True) for job in self.queue],
            processed_jobs=[job.model_copy(deep=True) for job in self.processed],
            config=self.run_config,
            last_updated=now_ms()
        )

    async def _checkpoint_job(self, job: Job) -> None:
        if self.store is not None:
            self.store.save_in_background(self.snapshot())

    async def save(self) -> bool:
        """Write the current queue and wait for any background saves."""
        if self.store is None:
            return True
        await self.store.save(self.snapshot())
        return await self.store.flush()

    def cancel(self) -> None:
        """Stop before the next group starts."""
        self._cancelled = True

    def _finish(self, job: Job) -> None:
        if job in self.queue:
            self.queue.remove(job)
        self.processed.append(job)

    async def _run_job(self, job: Job, position: int, total: int) -> bool:
        async def attempt() -> Job:
            job.attempts += 1
            job.status = "processing"
            return await self.pipeline.run(job, self.run_config, self.progress)

        def on_retry(attempt_number: int, error: BaseException, delay: float) -> None:
            logger.warning(
                f"Job {position}/{total} attempt {attempt_number} failed: {error}",
                extra={"retry_delay": delay}
            )

        try:
            await retry_async(
                attempt,
                policy=self.policy,
                retryable_exceptions=(JobFailedError,),
                on_retry=on_retry,
                sleep=self._sleep
            )
        except JobFailedError as e:
            job.status = "failed"
            job.outputs = {}
            job.error = f"Failed after {self.policy.max_attempts} attempts: {e.last_error or e}"
            job.touch()
            self.tracker.log(
                e.step or QUEUE_STEP,
                f"Job {position}/{total} failed: {job.error}",
                "ERROR",
                context={"job_id": str(job.id), "attempts": job.attempts}
            )
            self._finish(job)
            return False

        self._finish(job)
        return True

    def _report(self, total: int, groups_run: int, consecutive: int) -> SchedulerReport:
        return SchedulerReport(
            total_jobs=total,
            completed=sum(1 for job in self.processed if job.status == "completed"),
            failed=sum(1 for job in self.processed if job.status == "failed"),
            remaining=len(self.queue),
            groups_run=groups_run,
            consecutive_failures=consecutive
        )

    async def run(
        self,
        jobs: Optional[Sequence[Job]] = None,
        max_concurrency: Optional[int] = None,
        inter_chunk_delay: Optional[float] = None
    ) -> SchedulerReport:
        """
        Run queued jobs group by group.

        Args:
            jobs: Jobs to run; defaults to the whole queue. Jobs not yet
                queued are appended to it.
            max_concurrency: Jobs per group
            inter_chunk_delay: Seconds to wait between groups

        Returns:
            SchedulerReport; `cancelled` is set if cancel() stopped the run

        Raises:
            CircuitBreakerOpenError: After `breaker_threshold` consecutive
                groups in which every job failed; carries the partial report
        """
        self._cancelled = False
        for job in jobs or []:
            if job not in self.queue:
                self.queue.append(job)
        pending = list(jobs) if jobs is not None else list(self.queue)
        concurrency = max_concurrency or settings.max_concurrent_jobs
        delay = inter_chunk_delay if inter_chunk_delay is not None else self.run_config.delay_seconds
        groups = partition(pending, concurrency)
        total = len(pending)

        consecutive = 0
        groups_run = 0
        for group_index, group in enumerate(groups):
            if self._cancelled:
                logger.info("Run cancelled", extra={"groups_run": groups_run})
                await self.save()
                report = self._report(total, groups_run, consecutive)
                report.cancelled = True
                return report

            offset = group_index * concurrency
            logger.info(
                f"Running group {group_index + 1}/{len(groups)} with {len(group)} jobs",
                extra={"group_index": group_index}
            )
            results = await asyncio.gather(
                *(self._run_job(job, offset + i + 1, total) for i, job in enumerate(group))
            )
            groups_run += 1
            await self.save()

            consecutive = consecutive + 1 if not any(results) else 0
            if consecutive >= self.breaker_threshold:
                report = self._report(total, groups_run, consecutive)
                report.breaker_tripped = True
                message = f"Paused after {consecutive} consecutive failed groups (likely provider rate limits)"
                self.tracker.log(
                    QUEUE_STEP,
                    message,
                    "CRITICAL",
                    context={"remaining": report.remaining}
                )
                raise CircuitBreakerOpenError(message, consecutive_failures=consecutive, report=report)

            if group_index < len(groups) - 1 and delay > 0:
                await self._sleep(delay)

        report = self._report(total, groups_run, consecutive)
        logger.info(
            f"Queue finished: {report.completed} completed, {report.failed} failed",
            extra={"completed": report.completed, "failed": report.failed}
        )
        return report

"""
Per-job pipeline for steps 2-6.

Runs one job from wherever its checkpoint left off: steps 2 and 3 are
batched and checkpointed after every batch, steps 4-6 run once each.
"""

from typing import Awaitable, Callable, Optional

from shared.errors import JobFailedError, PipelineError
from shared.logging import get_logger, set_job_id, set_step
from shared.models.checkpoint import RunConfig
from shared.models.job import FIRST_BATCH_STEP, LAST_STEP, Job, QualityScore

from modules.batch_orchestrator.chunking import total_batches
from modules.batch_orchestrator.orchestrator import END_OF_SCRIPT, BatchOrchestrator, ProgressCallback

logger = get_logger("scheduler.pipeline")

CheckpointCallback = Callable[[Job], Awaitable[None]]


async def _no_checkpoint(job: Job) -> None:
    return None


class JobPipeline:
    """Drives one job through the generation steps."""

    def __init__(
        self,
        orchestrator: BatchOrchestrator,
        checkpoint: Optional[CheckpointCallback] = None,
        auto_fix: bool = True
    ):
        self.orchestrator = orchestrator
        self.checkpoint = checkpoint or _no_checkpoint
        self.auto_fix = auto_fix

    async def _advance(self, job: Job, step: int) -> None:
        job.current_step = min(step, LAST_STEP)
        job.completed_batches = 0
        job.touch()
        await self.checkpoint(job)

    async def _outline(self, job: Job, config: RunConfig, progress: Optional[ProgressCallback]) -> None:
        batches = total_batches(config.scene_count, self.orchestrator.scenes_per_batch)
        outline = job.partial_outputs.outline
        generate = (
            self.orchestrator.outline_batch_with_auto_fix if self.auto_fix else self.orchestrator.outline_batch
        )
        if job.completed_batches:
            logger.info(f"Resuming step 2 from batch {job.completed_batches}")

        for batch_index in range(job.completed_batches, batches):
            result = await generate(
                job.input_text,
                outline,
                batch_index,
                config.scene_count,
                config.target_words,
                config.tolerance,
                progress
            )
            if result.end_of_step:
                break
            outline = f"{outline}\n{result.content}" if outline else result.content
            job.warnings.extend(result.warnings)
            job.partial_outputs.outline = outline
            job.completed_batches = batch_index + 1
            job.touch()
            await self.checkpoint(job)

        job.outputs[2] = outline.strip()

    async def _script(self, job: Job, config: RunConfig, progress: Optional[ProgressCallback]) -> None:
        batches = total_batches(config.scene_count, self.orchestrator.scenes_per_batch)
        script = job.partial_outputs.script
        if job.completed_batches:
            logger.info(f"Resuming step 3 from batch {job.completed_batches}")

        for batch_index in range(job.completed_batches, batches):
            result = await self.orchestrator.script_batch(
                job.outputs[2], script, batch_index, config.scene_count, progress
            )
            finished = result.end_of_step or END_OF_SCRIPT in result.content
            content = result.content.replace(END_OF_SCRIPT, "").strip()
            if content:
                script = f"{script}\n{content}" if script else content
            job.partial_outputs.script = script
            job.completed_batches = batch_index + 1
            job.touch()
            await self.checkpoint(job)
            if finished:
                break

        job.outputs[3] = script.strip()

    async def run(
        self,
        job: Job,
        config: RunConfig,
        progress: Optional[ProgressCallback] = None
    ) -> Job:
        """
        Run the job's remaining steps.

        Args:
            job: Job to run; updated in place
            config: Scene count and voiceover word window
            progress: Optional (step_id, message, attempt) callback

        Returns:
            The completed job with outputs, warnings and quality score

        Raises:
            JobFailedError: If any step fails; carries the job id and step
        """
        set_job_id(job.id)
        try:
            logger.info(
                "Processing job",
                extra={"current_step": job.current_step, "completed_batches": job.completed_batches}
            )
            job.status = "processing"

            if job.current_step == FIRST_BATCH_STEP:
                await self._outline(job, config, progress)
                await self._advance(job, 3)

            if job.current_step == 3:
                await self._script(job, config, progress)
                await self._advance(job, 4)

            if job.current_step == 4:
                job.outputs[4] = await self.orchestrator.prompts_batch(job.outputs[3], progress)
                await self._advance(job, 5)

            if job.current_step == 5:
                job.outputs[5] = await self.orchestrator.extract_voiceover(job.outputs[3], progress)
                await self._advance(job, 6)

            job.outputs[6] = await self.orchestrator.create_metadata(job.outputs[3], progress)
            job.quality_score = QualityScore.from_warnings(config.scene_count, len(job.warnings))
            job.status = "completed"
            job.error = None
            job.touch()

            logger.info(
                "Job complete",
                extra={"warning_count": len(job.warnings), "quality": job.quality_score.score}
            )
            return job

        except JobFailedError:
            raise
        except PipelineError as e:
            logger.warning(f"Job failed at step {job.current_step}: {e}")
            raise JobFailedError(
                str(e), job_id=job.id, step=job.current_step, attempts=job.attempts, last_error=str(e)
            ) from e
        except Exception as e:
            logger.error(f"Unexpected error in job pipeline: {str(e)}", exc_info=True)
            raise JobFailedError(
                f"Unexpected error in job pipeline: {str(e)}",
                job_id=job.id,
                step=job.current_step,
                attempts=job.attempts,
                last_error=str(e)
            ) from e
        finally:
            set_step(None)
            set_job_id(None)

"""
Batch orchestration for the generation steps.

Step 2 (outline) runs a validate-and-feedback loop per batch: generate,
parse scenes, recount voiceovers, then retry with targeted feedback until
the batch is clean or the retry budget is spent. Scenes still missing
after the budget get one recovery call. Whatever remains is accepted with
its warnings; content problems never fail a job.
"""

from typing import Callable, Dict, List, Optional, Sequence, Tuple

from shared.config import settings
from shared.error_tracking import ErrorTracker, error_tracker
from shared.errors import GenerationError
from shared.logging import get_logger, set_step
from shared.models.generation import GenerationRequest, GenerationResponse
from shared.models.scene import BatchResult, BatchState, SceneWarning

from modules.auto_fix.engine import AutoFixEngine
from modules.providers.base import BaseAdapter
from modules.providers.factory import AdapterFactory
from modules.scene_validator.language import LanguageProfile, VIETNAMESE
from modules.scene_validator.validator import (
    check_word_count,
    missing_voiceover_warning,
    normalize_scene_block,
    parse_scene_blocks
)

from .chunking import batch_range, merge_prompt_values, split_script_into_chunks
from .prompts import PromptLibrary, system_prompt_for_step
from . import templates

logger = get_logger("batch_orchestrator")

ProgressCallback = Callable[[int, str, int], None]

END_OF_OUTLINE = "END_OF_OUTLINE"
END_OF_SCRIPT = "END_OF_SCRIPT"


class BatchOrchestrator:
    """Runs one generation step for one batch (or one unbatched step)."""

    def __init__(
        self,
        factory: AdapterFactory,
        prompts: PromptLibrary,
        profile: LanguageProfile = VIETNAMESE,
        tracker: Optional[ErrorTracker] = None,
        auto_fix: Optional[AutoFixEngine] = None,
        scenes_per_batch: Optional[int] = None,
        max_retries: Optional[int] = None,
        progress: Optional[ProgressCallback] = None
    ):
        self.factory = factory
        self.prompts = prompts
        self.profile = profile
        self.tracker = tracker or error_tracker
        self.auto_fix = auto_fix or AutoFixEngine(factory, profile=profile, tracker=self.tracker)
        self.scenes_per_batch = scenes_per_batch or settings.scenes_per_batch
        self.max_retries = max_retries or settings.batch_max_retries
        self.progress = progress
        self.context_chars = settings.outline_context_chars
        self.recovery_chars = settings.recovery_context_chars
        self.metadata_chars = settings.metadata_max_chars

    def _report(self, progress: Optional[ProgressCallback], step: int, message: str, attempt: int) -> None:
        callback = progress or self.progress
        if callback is not None:
            callback(step, message, attempt)

    async def _call(
        self,
        step: int,
        user_message: str,
        use_search: bool = False,
        adapter: Optional[BaseAdapter] = None
    ) -> GenerationResponse:
        set_step(step)
        adapter = adapter or self.factory.adapter_for_step(step)
        request = GenerationRequest(
            system_instruction=system_prompt_for_step(self.prompts, step),
            user_message=user_message,
            use_search=use_search
        )
        return await adapter.generate(request)

    def _assess(
        self,
        raw: str,
        expected: Sequence[int],
        target: int,
        tolerance: int
    ) -> Tuple[Dict[int, str], List[SceneWarning], List[int]]:
        """Normalized blocks, word-window warnings and missing indices for one response."""
        parsed = parse_scene_blocks(raw)
        blocks: Dict[int, str] = {}
        warnings: List[SceneWarning] = []
        missing: List[int] = []

        for index in expected:
            if index not in parsed:
                missing.append(index)
                continue
            block, count = normalize_scene_block(parsed[index], self.profile)
            if count is None:
                warnings.append(missing_voiceover_warning(index, target, tolerance))
            else:
                warning = check_word_count(index, count, target, tolerance)
                if warning is not None:
                    warnings.append(warning)
            blocks[index] = block

        return blocks, warnings, missing

    @staticmethod
    def _join(blocks: Dict[int, str]) -> str:
        return "\n\n".join(blocks[i] for i in sorted(blocks))

    async def outline_batch(
        self,
        input_text: str,
        current_outline: str,
        batch_index: int,
        scene_count: int,
        target: int,
        tolerance: int,
        progress: Optional[ProgressCallback] = None
    ) -> BatchResult:
        """
        Generate one outline batch with validation feedback and recovery.

        Args:
            input_text: Source material for the job
            current_outline: Outline accumulated by earlier batches
            batch_index: 0-based batch number
            scene_count: Total scenes in the job
            target: Voiceover word target
            tolerance: Allowed distance from target
            progress: Optional (step_id, message, attempt) callback

        Returns:
            BatchResult; end_of_step is set when the batch starts past scene_count
        """
        step = 2
        scene_range = batch_range(batch_index, self.scenes_per_batch, scene_count)
        if scene_range is None:
            start = batch_index * self.scenes_per_batch + 1
            return BatchResult(content=END_OF_OUTLINE, start_index=start, end_index=scene_count, end_of_step=True)

        start, end = scene_range
        expected = list(range(start, end + 1))
        label = f"{start}-{end}"

        blocks: Dict[int, str] = {}
        warnings: List[SceneWarning] = []
        missing: List[int] = list(expected)
        feedback = ""
        state: BatchState = "drafting"
        attempts = 0

        while attempts < self.max_retries:
            attempts += 1
            prompt = templates.outline_prompt(
                self.profile,
                input_text,
                current_outline[-self.context_chars:] if current_outline else "",
                start,
                end,
                scene_count,
                target,
                tolerance,
                feedback
            )
            logger.info(
                f"Outline batch {batch_index + 1} attempt {attempts}/{self.max_retries}",
                extra={"batch_index": batch_index, "scene_range": label, "attempt": attempts}
            )

            try:
                response = await self._call(step, prompt)
            except GenerationError as e:
                self.tracker.log(
                    step,
                    f"API Error at Batch {batch_index + 1} Attempt {attempts}: {e}",
                    "ERROR",
                    batch_index=batch_index,
                    scene_range=label,
                    context={"error": str(e)}
                )
                self._report(progress, step, f"API Error: {e}", attempts)
                feedback = templates.system_error_feedback(str(e))
                state = "retrying"
                continue

            state = "validating"
            blocks, warnings, missing = self._assess(response.content, expected, target, tolerance)

            if missing:
                feedback = templates.missing_scene_feedback(self.profile, missing, start, end)
                if warnings:
                    feedback += templates.validation_feedback(self.profile, warnings, attempts + 1, header=False)
                logger.warning(
                    f"Outline batch {batch_index + 1} missing scenes {missing}",
                    extra={"batch_index": batch_index, "attempt": attempts, "missing": missing}
                )
                self._report(progress, step, f"Missing scenes: {', '.join(map(str, missing))}", attempts)
                state = "retrying"
                continue

            if not warnings:
                state = "accepted"
                logger.info(
                    f"Outline batch {batch_index + 1} passed validation",
                    extra={"batch_index": batch_index, "attempt": attempts}
                )
                break

            feedback = templates.validation_feedback(self.profile, warnings, attempts + 1)
            self._report(progress, step, "Validation failed", attempts)
            state = "retrying"

        recovered: List[int] = []
        if state != "accepted":
            if missing:
                state = "recovering"
                recovered, recovered_warnings = await self._recover(
                    batch_index, blocks, missing, current_outline, target, tolerance, label
                )
                warnings.extend(recovered_warnings)
            state = "exhausted"
            logger.warning(
                f"Outline batch {batch_index + 1} accepted after exhausting retries",
                extra={"batch_index": batch_index, "warning_count": len(warnings)}
            )

        still_missing = [i for i in expected if i not in blocks]
        return BatchResult(
            content=self._join(blocks),
            warnings=sorted(warnings, key=lambda w: w.scene_index),
            start_index=start,
            end_index=end,
            attempts=attempts,
            final_state=state,
            recovered_indices=recovered,
            missing_indices=still_missing
        )

    async def _recover(
        self,
        batch_index: int,
        blocks: Dict[int, str],
        missing: List[int],
        current_outline: str,
        target: int,
        tolerance: int,
        label: str
    ) -> Tuple[List[int], List[SceneWarning]]:
        """One recovery call for missing scenes; fills only indices that are still empty."""
        step = 2
        logger.info(
            f"Recovery pass for scenes {missing}",
            extra={"batch_index": batch_index, "missing": missing}
        )
        prompt = templates.recovery_prompt(
            self.profile,
            missing,
            current_outline[-self.recovery_chars:] if current_outline else "",
            self._join(blocks)[-self.recovery_chars:],
            target
        )
        try:
            response = await self._call(step, prompt)
        except GenerationError as e:
            self.tracker.log(
                step,
                f"Recovery Failed: {e}",
                "ERROR",
                batch_index=batch_index,
                scene_range=label,
                context={"error": str(e)}
            )
            return [], []

        gaps = [i for i in missing if i not in blocks]
        found, warnings, _ = self._assess(response.content, gaps, target, tolerance)
        blocks.update(found)
        recovered = sorted(found)
        if recovered:
            logger.info(f"Recovered scenes {recovered}", extra={"batch_index": batch_index})
        return recovered, warnings

    async def outline_batch_with_auto_fix(
        self,
        input_text: str,
        current_outline: str,
        batch_index: int,
        scene_count: int,
        target: int,
        tolerance: int,
        progress: Optional[ProgressCallback] = None
    ) -> BatchResult:
        """outline_batch followed by structural auto-fix of the accepted batch."""
        result = await self.outline_batch(
            input_text, current_outline, batch_index, scene_count, target, tolerance, progress
        )
        if result.end_of_step or not result.content:
            return result

        outcome = await self.auto_fix.run(
            result.content,
            start_index=result.start_index,
            expected_count=result.end_index - result.start_index + 1,
            target=target,
            tolerance=tolerance,
            system_prompt=system_prompt_for_step(self.prompts, 2)
        )

        warnings = result.warnings
        if outcome.fixed_scenes:
            present = [i for i in range(result.start_index, result.end_index + 1) if i not in result.missing_indices]
            _, warnings, _ = self._assess(outcome.content, present, target, tolerance)

        return result.model_copy(update={
            "content": outcome.content,
            "warnings": warnings,
            "fixed_scenes": outcome.fixed_indices,
            "still_invalid": outcome.still_invalid,
            "quality_metrics": outcome.metrics,
        })

    async def script_batch(
        self,
        outline: str,
        previous_script: str,
        batch_index: int,
        scene_count: int,
        progress: Optional[ProgressCallback] = None
    ) -> BatchResult:
        """Step 3: write the full script for one batch of the outline."""
        step = 3
        scene_range = batch_range(batch_index, self.scenes_per_batch, scene_count)
        if scene_range is None:
            start = batch_index * self.scenes_per_batch + 1
            return BatchResult(content=END_OF_SCRIPT, start_index=start, end_index=scene_count, end_of_step=True)

        start, end = scene_range
        self._report(progress, step, f"Writing scenes {start}-{end}", 1)
        prompt = templates.script_prompt(
            self.profile,
            outline,
            previous_script[-self.context_chars:] if previous_script else "",
            start,
            end,
            scene_count
        )
        response = await self._call(step, prompt)
        return BatchResult(content=response.content, start_index=start, end_index=end, attempts=1)

    async def prompts_batch(self, script: str, progress: Optional[ProgressCallback] = None) -> str:
        """
        Step 4: extract image/video prompts chunk by chunk and merge them.

        Chunks whose output cannot be parsed are tracked and skipped.
        """
        step = 4
        chunks = split_script_into_chunks(script)
        values = []
        for i, chunk in enumerate(chunks, start=1):
            self._report(progress, step, f"Extracting prompts {i}/{len(chunks)}", 1)
            set_step(step)
            adapter = self.factory.adapter_for_step(step)
            request = GenerationRequest(
                system_instruction=system_prompt_for_step(self.prompts, step),
                user_message=templates.prompts_extraction_prompt(self.profile, chunk)
            )
            result = await adapter.generate_structured(request)
            if not result.ok:
                self.tracker.log(
                    step,
                    f"Prompt chunk {i} returned unparseable JSON: {result.error.message}",
                    "WARNING",
                    batch_index=i - 1
                )
                continue
            values.append(result.value)
        return merge_prompt_values(values)

    async def extract_voiceover(self, script: str, progress: Optional[ProgressCallback] = None) -> str:
        """Step 5: verbatim voiceover per scene."""
        self._report(progress, 5, "Extracting voiceover", 1)
        response = await self._call(5, templates.voiceover_extraction_prompt(self.profile, script))
        return response.content

    async def create_metadata(self, script: str, progress: Optional[ProgressCallback] = None) -> str:
        """Step 6: publishing metadata from the head of the script."""
        self._report(progress, 6, "Creating metadata", 1)
        response = await self._call(6, templates.metadata_prompt(script[:self.metadata_chars]))
        return response.content

    async def research(
        self,
        keyword: str,
        adapter: Optional[BaseAdapter] = None,
        progress: Optional[ProgressCallback] = None
    ) -> str:
        """Step 1: search-grounded research for a keyword."""
        self._report(progress, 1, f"Researching '{keyword}'", 1)
        response = await self._call(1, templates.research_prompt(keyword), use_search=True, adapter=adapter)
        return response.content

"""
Structural auto-fix for generated scenes.

Scenes that fail structural validation (missing or thin visual, missing
voiceover) get targeted repair calls. Repairs are bounded: at most
`max_scenes` scenes per call, a per-call timeout and a fixed number of
validate/fix passes.
"""

import asyncio
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from shared.config import settings
from shared.error_tracking import ErrorTracker, error_tracker
from shared.errors import GenerationError, ValidationError
from shared.logging import get_logger
from shared.models.generation import GenerationRequest
from shared.models.scene import FixedScene, QualityMetrics, SceneValidation

from modules.providers.factory import AdapterFactory
from modules.scene_validator.language import LanguageProfile, VIETNAMESE
from modules.scene_validator.validator import SceneValidator, normalize_scene_block, parse_scene_blocks

from .prompts import build_fix_prompt, build_group_fix_prompt, fix_reasons, scene_snapshot

logger = get_logger("auto_fix")

OUTLINE_STEP = 2


@dataclass
class AutoFixOutcome:
    """Result of running auto-fix over one batch."""

    content: str
    fixed_scenes: List[FixedScene] = field(default_factory=list)
    still_invalid: List[int] = field(default_factory=list)
    metrics: QualityMetrics = field(default_factory=QualityMetrics)

    @property
    def fixed_indices(self) -> List[int]:
        return sorted(fix.scene_index for fix in self.fixed_scenes)


def _scene_pattern(scene_index: int) -> "re.Pattern[str]":
    # Body runs to the next header, a "===" separator or the end of the text
    return re.compile(
        rf"(Scene\s*{scene_index}(?!\d)[:.]?.*?)(?=\n\s*(?:Scene\s*\d+|===+)|\s*$)",
        re.IGNORECASE | re.DOTALL
    )


def apply_fixes(text: str, fixes: Sequence[FixedScene]) -> str:
    """Replace each successfully fixed scene in place, anchored on its index."""
    result = text
    for fix in fixes:
        if not (fix.fixed_content and fix.is_valid_after_fix):
            continue
        replacement = fix.fixed_content.strip()
        result = _scene_pattern(fix.scene_index).sub(lambda _: replacement, result, count=1)
    return result


class AutoFixEngine:
    """Repairs structurally invalid scenes with secondary provider calls."""

    def __init__(
        self,
        factory: AdapterFactory,
        profile: LanguageProfile = VIETNAMESE,
        tracker: Optional[ErrorTracker] = None,
        timeout: Optional[float] = None,
        max_scenes: Optional[int] = None,
        max_passes: Optional[int] = None
    ):
        self.factory = factory
        self.profile = profile
        self.validator = SceneValidator(profile)
        self.tracker = tracker or error_tracker
        self.timeout = timeout if timeout is not None else settings.auto_fix_timeout_seconds
        self.max_scenes = max_scenes or settings.auto_fix_max_scenes
        self.max_passes = max_passes or settings.auto_fix_max_passes

    async def _generate(self, system_prompt: str, user_message: str) -> str:
        adapter = self.factory.adapter_for_step(OUTLINE_STEP)
        request = GenerationRequest(system_instruction=system_prompt, user_message=user_message)
        response = await asyncio.wait_for(adapter.generate(request), timeout=self.timeout)
        return response.content

    def _normalize(self, block: str) -> str:
        normalized, _ = normalize_scene_block(block, self.profile)
        return normalized

    async def fix_scene(
        self,
        validation: SceneValidation,
        target: int,
        tolerance: int,
        system_prompt: str
    ) -> FixedScene:
        """
        Repair one scene with a dedicated call.

        Public single-scene API for callers repairing a scene on its own;
        run() and fix_scenes() go through grouped calls with the stricter
        rule that the returned scene must validate. Here the repair counts
        as successful when the returned scene validates, or parses with at
        most one remaining issue.

        Raises:
            ValidationError: If the scene could not be parsed at all
        """
        scene = validation.scene
        if scene is None:
            raise ValidationError("Cannot fix a scene without a parseable header")

        reasons = fix_reasons(validation.issues, self.profile)
        original = scene_snapshot(scene, self.profile)
        prompt = build_fix_prompt(scene, reasons, target, tolerance, self.profile)

        try:
            content = await self._generate(system_prompt, prompt)
        except (asyncio.TimeoutError, GenerationError) as e:
            message = str(e) or f"timed out after {self.timeout}s"
            self.tracker.log(
                OUTLINE_STEP,
                f"Auto-fix failed for Scene {scene.index}: {message}",
                "ERROR",
                scene_range=str(scene.index)
            )
            return FixedScene(scene_index=scene.index, original_content=original, fix_reasons=reasons)

        fixed = self._normalize(parse_scene_blocks(content).get(scene.index, content.strip()))
        revalidated = self.validator.validate_scene(fixed)
        is_valid = revalidated.is_valid or (revalidated.scene is not None and len(revalidated.issues) <= 1)

        return FixedScene(
            scene_index=scene.index,
            original_content=original,
            fixed_content=fixed,
            fix_reasons=reasons,
            is_valid_after_fix=is_valid
        )

    async def _fix_group(
        self,
        group: List[SceneValidation],
        target: int,
        tolerance: int,
        system_prompt: str,
        context: str
    ) -> List[FixedScene]:
        originals = {v.scene.index: v for v in group}
        prompt = build_group_fix_prompt(group, target, tolerance, context, self.profile)

        def result_for(index: int, fixed_content: str = "", is_valid: bool = False) -> FixedScene:
            validation = originals[index]
            return FixedScene(
                scene_index=index,
                original_content=scene_snapshot(validation.scene, self.profile),
                fixed_content=fixed_content,
                fix_reasons=fix_reasons(validation.issues, self.profile),
                is_valid_after_fix=is_valid
            )

        try:
            content = await self._generate(system_prompt, prompt)
        except (asyncio.TimeoutError, GenerationError) as e:
            message = str(e) or f"timed out after {self.timeout}s"
            indices = sorted(originals)
            self.tracker.log(
                OUTLINE_STEP,
                f"Batch auto-fix failed: {message}",
                "ERROR",
                scene_range=f"{indices[0]}-{indices[-1]}",
                context={"scenes": indices}
            )
            return [result_for(index) for index in indices]

        returned = parse_scene_blocks(content)
        fixes: List[FixedScene] = []
        for index in sorted(originals):
            if index not in returned:
                fixes.append(result_for(index))
                continue
            fixed = self._normalize(returned[index])
            fixes.append(result_for(index, fixed_content=fixed, is_valid=self.validator.validate_scene(fixed).is_valid))
        return fixes

    async def fix_scenes(
        self,
        invalid: Sequence[SceneValidation],
        target: int,
        tolerance: int,
        system_prompt: str,
        context: str
    ) -> List[FixedScene]:
        """
        Repair invalid scenes in groups of at most `max_scenes` per call.

        Scenes without a parseable header are skipped. A scene missing from
        a response, or a group whose call fails or times out, is reported
        as not fixed.
        """
        parseable = [v for v in invalid if v.scene is not None]
        fixes: List[FixedScene] = []
        for offset in range(0, len(parseable), self.max_scenes):
            group = parseable[offset:offset + self.max_scenes]
            fixes.extend(await self._fix_group(group, target, tolerance, system_prompt, context))
        return fixes

    async def run(
        self,
        content: str,
        start_index: int,
        expected_count: int,
        target: int,
        tolerance: int,
        system_prompt: str,
        max_passes: Optional[int] = None
    ) -> AutoFixOutcome:
        """
        Validate and repair a batch until it is structurally clean.

        Args:
            content: Accepted batch text
            start_index: First scene number of the batch
            expected_count: Number of scenes in the batch
            target: Voiceover word target passed to repair prompts
            tolerance: Allowed distance from target
            system_prompt: Step 2 system prompt
            max_passes: Override for the number of validate/fix passes

        Returns:
            AutoFixOutcome with the repaired content and quality metrics
        """
        passes = max_passes or self.max_passes
        current = content
        fixed: Dict[int, FixedScene] = {}
        reasons: List[str] = []
        passes_used = 0

        for pass_number in range(1, passes + 1):
            report = self.validator.validate(current, expected_count, start_index=start_index)
            if not report.invalid_scenes:
                break
            passes_used = pass_number

            logger.info(
                f"Auto-fix pass {pass_number}: {len(report.invalid_scenes)} invalid scenes",
                extra={"start_index": start_index, "pass_number": pass_number}
            )
            fixes = await self.fix_scenes(report.invalid_scenes, target, tolerance, system_prompt, current)
            successful = [f for f in fixes if f.is_valid_after_fix and f.fixed_content]
            for fix in successful:
                if fix.scene_index not in fixed:
                    fixed[fix.scene_index] = fix
                    reasons.extend(fix.fix_reasons)
            if successful:
                current = apply_fixes(current, successful)

        final = self.validator.validate(current, expected_count, start_index=start_index)
        still_invalid = sorted(v.scene.index for v in final.invalid_scenes if v.scene is not None)
        if still_invalid:
            self.tracker.log(
                OUTLINE_STEP,
                f"Auto-fix failed for scenes: {', '.join(map(str, still_invalid))}",
                "WARNING",
                scene_range=f"{start_index}-{start_index + expected_count - 1}"
            )

        fixed_scenes = [fixed[i] for i in sorted(fixed) if i not in still_invalid]
        metrics = QualityMetrics(
            total_fixed=len(fixed_scenes),
            still_invalid=still_invalid,
            recovery_attempts=passes_used,
            completion_rate=final.completion_rate,
            fix_reasons=list(dict.fromkeys(reasons))
        )
        logger.info(
            f"Auto-fix complete: {metrics.total_fixed} fixed, {len(still_invalid)} still invalid",
            extra={"start_index": start_index, "total_fixed": metrics.total_fixed}
        )
        return AutoFixOutcome(content=current, fixed_scenes=fixed_scenes, still_invalid=still_invalid, metrics=metrics)

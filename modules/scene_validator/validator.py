"""
Scene parsing and validation.

Pure functions over generated text: no I/O, no provider calls. Structural
checks (header, visual, voiceover) and the voiceover word window are
reported separately so callers can decide what is fatal.
"""

import re
from typing import Dict, List, Optional, Tuple

from shared.models.scene import Scene, SceneIssue, SceneValidation, SceneWarning, ValidationReport

from .language import LanguageProfile, VIETNAMESE
from .word_counter import count_words

MIN_VISUAL_WORDS = 10

# Provider responses are keyed on literal "Scene N:" headers
_BLOCK_SPLIT = re.compile(r"(?=Scene \d+:)", re.IGNORECASE)
_BLOCK_HEADER = re.compile(r"^Scene (\d+):", re.IGNORECASE)
_LIST_MARKER = re.compile(r"^\d+\.\s*(?=\D)")


def check_word_count(scene_index: int, actual: int, target: int, tolerance: int) -> Optional[SceneWarning]:
    """
    Warn when a voiceover count falls outside target±tolerance.

    diff is the signed distance past the nearest bound: positive when
    too long, negative when too short.
    """
    word_min = target - tolerance
    word_max = target + tolerance
    if word_min <= actual <= word_max:
        return None
    diff = actual - word_max if actual > word_max else actual - word_min
    return SceneWarning(scene_index=scene_index, actual=actual, target=target, tolerance=tolerance, diff=diff)


def missing_voiceover_warning(scene_index: int, target: int, tolerance: int) -> SceneWarning:
    return SceneWarning(scene_index=scene_index, actual=0, target=target, tolerance=tolerance, diff=-target)


def parse_scene_blocks(text: str) -> Dict[int, str]:
    """
    Split a provider response into blocks keyed by scene number.

    Text before the first header is dropped. When a number repeats, the
    last block wins.
    """
    blocks: Dict[int, str] = {}
    for part in _BLOCK_SPLIT.split(text or ""):
        part = part.strip()
        match = _BLOCK_HEADER.match(part)
        if match:
            blocks[int(match.group(1))] = part
    return blocks


def clean_voiceover(content: str, profile: LanguageProfile) -> str:
    """Drop count annotations and markdown emphasis from voiceover text."""
    return profile.annotation_pattern.sub("", content).replace("**", "").strip()


def normalize_scene_block(block: str, profile: LanguageProfile) -> Tuple[str, Optional[int]]:
    """
    Recount a block's voiceover and rewrite its annotation.

    The provider's own "(N words)" annotation is never trusted.

    Returns:
        (normalized block, word count), or (block, None) when the block
        has no voiceover section
    """
    match = profile.voiceover_line_pattern.search(block)
    if not match:
        return block, None

    content = clean_voiceover(match.group(1), profile)
    if not content:
        return block, None

    count = count_words(content)
    replacement = f"{profile.voiceover_label}: {content} {profile.annotate(count)}"
    normalized = block[:match.start()] + replacement + block[match.end():]
    return normalized.strip(), count


def build_scene_text(scene: Scene, profile: LanguageProfile) -> str:
    return (
        f"Scene {scene.index}: {scene.title}\n"
        f"{profile.visual_label}: {scene.visual}\n"
        f"{profile.voiceover_label}: {scene.voiceover} {profile.annotate(scene.word_count)}"
    )


def split_scenes(text: str, profile: LanguageProfile) -> List[str]:
    """
    Split loosely formatted text into scene candidates.

    Splits on scene headers (optionally list-numbered, e.g. "4. Scene 4:")
    and on "===" separator lines. Only parts that start with a scene
    header are returned.
    """
    words = "|".join(profile.scene_words)
    patterns = [
        re.compile(rf"(?=\n\s*(?:\d+\.\s*)?(?:{words})\s*\d+[:.]?)", re.IGNORECASE),
        re.compile(r"(?=\n===+)"),
    ]

    parts = [text or ""]
    for pattern in patterns:
        split_parts: List[str] = []
        for part in parts:
            pieces = [p for p in pattern.split(part) if p.strip()]
            split_parts.extend(pieces if len(pieces) > 1 else [part])
        parts = split_parts

    header = re.compile(rf"^(?:\d+\.\s*)?(?:{words})\s*\d+", re.IGNORECASE)
    return [p.strip() for p in parts if header.match(p.strip())]


class SceneValidator:
    """Validates scenes for one language."""

    def __init__(self, profile: LanguageProfile = VIETNAMESE):
        self.profile = profile

    def validate_scene(
        self,
        text: str,
        target: Optional[int] = None,
        tolerance: Optional[int] = None
    ) -> SceneValidation:
        """
        Validate the structure of a single scene block.

        Args:
            text: One scene, starting with its header
            target: Optional voiceover target; enables the word window check
            tolerance: Allowed distance from target (default 0)

        Returns:
            SceneValidation; scene is None when the header cannot be parsed
        """
        profile = self.profile
        trimmed = (text or "").strip()
        issues: List[SceneIssue] = []
        suggestions: List[str] = []

        if not trimmed:
            return SceneValidation(
                scene=None,
                is_valid=False,
                issues=["empty_scene"],
                suggestions=["Scene content is empty"]
            )

        trimmed = _LIST_MARKER.sub("", trimmed.lstrip("*# \t")).lstrip("*# \t")
        header = profile.scene_header_pattern.match(trimmed)
        if not header or int(header.group(1)) < 1:
            names = " or ".join(f'"{word} X:"' for word in profile.scene_words)
            return SceneValidation(
                scene=None,
                is_valid=False,
                issues=["invalid_format"],
                suggestions=[f"Scene must start with {names}"]
            )

        index = int(header.group(1))
        title = header.group(2).strip(" *") or f"Scene {index}"

        visual_match = profile.visual_pattern.search(trimmed)
        visual = visual_match.group(1).strip(" \t\n*") if visual_match else ""
        if not visual:
            issues.append("missing_visual")
            suggestions.append(f'Add "{profile.visual_label}:" section with visual description')
        elif len(visual.split()) < MIN_VISUAL_WORDS:
            issues.append("visual_too_short")
            suggestions.append(f"Visual description should be at least {MIN_VISUAL_WORDS} words")

        voiceover_match = profile.voiceover_pattern.search(trimmed)
        voiceover = clean_voiceover(voiceover_match.group(1), profile) if voiceover_match else ""
        if not voiceover:
            issues.append("missing_voiceover")
            suggestions.append(f'Add "{profile.voiceover_label}:" section with voiceover content')

        word_count = count_words(voiceover)
        if target is not None and voiceover:
            warning = check_word_count(index, word_count, target, tolerance or 0)
            if warning is not None:
                issues.append("word_count_out_of_range")
                suggestions.append(
                    f"{profile.voiceover_label} has {word_count} {profile.word_unit}, "
                    f"needs {target - (tolerance or 0)}-{target + (tolerance or 0)}"
                )

        scene = Scene(index=index, title=title, visual=visual, voiceover=voiceover, word_count=word_count)
        return SceneValidation(scene=scene, is_valid=not issues, issues=issues, suggestions=suggestions)

    def validate(
        self,
        text: str,
        expected_count: int,
        start_index: int = 1,
        target: Optional[int] = None,
        tolerance: Optional[int] = None
    ) -> ValidationReport:
        """
        Validate every scene in a text against an expected index range.

        Args:
            text: Generated content
            expected_count: Number of scenes expected
            start_index: First expected scene number (batches start mid-outline)
            target: Optional voiceover target for the word window check
            tolerance: Allowed distance from target

        Returns:
            ValidationReport covering indices start_index..start_index+expected_count-1
        """
        expected = list(range(start_index, start_index + expected_count))

        if not text or not text.strip():
            return ValidationReport(
                total_expected=expected_count,
                total_found=0,
                missing_indices=expected,
                completion_rate=0
            )

        valid: Dict[int, Scene] = {}
        invalid: Dict[int, SceneValidation] = {}
        for block in split_scenes(text, self.profile):
            result = self.validate_scene(block, target, tolerance)
            if result.scene is None:
                continue
            index = result.scene.index
            if result.is_valid:
                valid[index] = result.scene
                invalid.pop(index, None)
            elif index not in valid:
                invalid[index] = result

        found = set(valid) | set(invalid)
        valid_in_range = [i for i in expected if i in valid]
        completion_rate = round(len(valid_in_range) / expected_count * 100) if expected_count > 0 else 0

        return ValidationReport(
            total_expected=expected_count,
            total_found=len(found),
            valid_scenes=[valid[i] for i in sorted(valid)],
            invalid_scenes=[invalid[i] for i in sorted(invalid)],
            missing_indices=[i for i in expected if i not in found],
            completion_rate=min(completion_rate, 100),
            reconstructed_text="\n\n".join(build_scene_text(valid[i], self.profile) for i in sorted(valid))
        )

    def detect_missing_fields(self, text: str) -> List[str]:
        """Names of missing or malformed parts, e.g. ["visual", "voiceover"]."""
        result = self.validate_scene(text)
        return [
            issue.replace("missing_", "").replace("invalid_", "")
            for issue in result.issues
            if issue.startswith(("missing_", "invalid_"))
        ]

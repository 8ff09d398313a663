"""
Validation utilities.

Shared validation for caller-supplied run parameters and job inputs.
"""

from typing import List

from shared.errors import ValidationError


def validate_input_text(
    text: str,
    min_length: int = 1,
    max_length: int = 100_000
) -> None:
    """
    Validate the source text of a job.

    Args:
        text: Input text (news, events, topic brief)
        min_length: Minimum length in characters (default: 1)
        max_length: Maximum length in characters (default: 100000)

    Raises:
        ValidationError: If text is invalid
    """
    if text is None:
        raise ValidationError("Input text is required")

    if not isinstance(text, str):
        raise ValidationError("Input text must be a string")

    text_length = len(text.strip())

    if text_length < min_length:
        raise ValidationError(
            f"Input text must be at least {min_length} characters long "
            f"(current: {text_length})"
        )

    if text_length > max_length:
        raise ValidationError(
            f"Input text must be at most {max_length} characters long "
            f"(current: {text_length})"
        )


def validate_word_window(target: int, tolerance: int) -> None:
    """
    Validate a voiceover target±tolerance window.

    Raises:
        ValidationError: If the window is empty or reaches zero words
    """
    if target < 1:
        raise ValidationError(f"Target word count must be positive (got {target})")
    if tolerance < 0:
        raise ValidationError(f"Tolerance cannot be negative (got {tolerance})")
    if tolerance >= target:
        raise ValidationError(
            f"Tolerance ({tolerance}) must be smaller than target ({target})"
        )


def validate_scene_count(scene_count: int, max_scenes: int = 1000) -> None:
    """
    Validate number of scenes requested per job.

    Raises:
        ValidationError: If scene_count is outside [1, max_scenes]
    """
    if scene_count < 1:
        raise ValidationError("Scene count must be at least 1")
    if scene_count > max_scenes:
        raise ValidationError(
            f"Scene count must be at most {max_scenes} (current: {scene_count})"
        )


def parse_job_inputs(raw: str, separator: str = "---") -> List[str]:
    """
    Split a multi-job input document into individual job inputs.

    Jobs are separated by a line containing only the separator; blank
    entries are dropped.
    """
    inputs: List[str] = []
    current: List[str] = []
    for line in raw.splitlines():
        if line.strip() == separator:
            if "\n".join(current).strip():
                inputs.append("\n".join(current).strip())
            current = []
        else:
            current.append(line)
    if "\n".join(current).strip():
        inputs.append("\n".join(current).strip())
    return inputs

"""
Per-language scene vocabulary.

Everything the validator, orchestrator and auto-fix engine need to know
about a language lives in one LanguageProfile value.
"""

import re
from dataclasses import dataclass
from typing import Dict, Pattern, Tuple

from shared.errors import ValidationError


@dataclass(frozen=True)
class LanguageProfile:
    code: str
    name: str
    word_unit: str
    visual_label: str
    voiceover_label: str
    # Header words accepted before the scene number
    scene_words: Tuple[str, ...]
    # Label alternations used when parsing loosely formatted scenes
    visual_labels: str
    voiceover_labels: str
    voiceover_stop: str
    default_min_words: int
    default_max_words: int

    @property
    def scene_header_pattern(self) -> Pattern[str]:
        """`Scene 3: title` / `Cảnh 3. title` on the first line."""
        words = "|".join(self.scene_words)
        return re.compile(rf"^(?:{words})\s*(\d+)[:.]?\s*(.*)$", re.IGNORECASE | re.MULTILINE)

    @property
    def visual_pattern(self) -> Pattern[str]:
        """Labelled visual section, up to the voiceover label."""
        return re.compile(
            rf"(?:^|\n)[ \t*]*(?:{self.visual_labels})[ \t*]*:[ \t*]*(.*?)"
            rf"(?=\n[\s*]*(?:{self.voiceover_stop})|$)",
            re.IGNORECASE | re.DOTALL
        )

    @property
    def voiceover_pattern(self) -> Pattern[str]:
        """Labelled voiceover section, up to the next scene header."""
        words = "|".join(self.scene_words)
        return re.compile(
            rf"(?:^|\n)[ \t*]*(?:{self.voiceover_labels})[ \t*]*:[ \t*]*(.*?)"
            rf"(?=\n[\s*]*(?:{words})\s*\d|$)",
            re.IGNORECASE | re.DOTALL
        )

    @property
    def voiceover_line_pattern(self) -> Pattern[str]:
        """Labelled voiceover paragraph, with an optional trailing count annotation."""
        return re.compile(
            rf"{re.escape(self.voiceover_label)}:\s*([\s\S]*?)"
            rf"(?:\s*\(\d+\s*{self.annotation_unit}\)\s*)?(?=\n\n|$)",
            re.IGNORECASE
        )

    @property
    def annotation_pattern(self) -> Pattern[str]:
        return re.compile(rf"\(\d+\s*{self.annotation_unit}\)", re.IGNORECASE)

    @property
    def annotation_unit(self) -> str:
        return "words?" if self.word_unit == "words" else re.escape(self.word_unit)

    def annotate(self, count: int) -> str:
        return f"({count} {self.word_unit})"


VIETNAMESE = LanguageProfile(
    code="vi",
    name="Tiếng Việt",
    word_unit="từ",
    visual_label="Hình ảnh",
    voiceover_label="Lời dẫn",
    scene_words=("Scene", "Cảnh"),
    visual_labels=r"Hình\s*ảnh|Visual|Image",
    voiceover_labels=r"Lời\s*dẫn|Voice\s*-?\s*over|Vo|Audio",
    voiceover_stop=r"Lời|Vo|Voice",
    default_min_words=18,
    default_max_words=22,
)

ENGLISH = LanguageProfile(
    code="en",
    name="English",
    word_unit="words",
    visual_label="Image",
    voiceover_label="Voice-over",
    scene_words=("Scene",),
    visual_labels=r"Image|Visual",
    voiceover_labels=r"Voice\s*-?\s*over|Vo|Audio|Narration",
    voiceover_stop=r"Voice|Vo",
    default_min_words=14,
    default_max_words=20,
)

PROFILES: Dict[str, LanguageProfile] = {
    VIETNAMESE.code: VIETNAMESE,
    ENGLISH.code: ENGLISH,
}


def get_profile(language: str) -> LanguageProfile:
    """
    Look up a language profile.

    Raises:
        ValidationError: If the language is not supported
    """
    profile = PROFILES.get(language)
    if profile is None:
        raise ValidationError(
            f"Unsupported language '{language}'. Supported: {', '.join(PROFILES)}"
        )
    return profile

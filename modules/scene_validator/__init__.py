"""
Scene Validator module exports.

Public API for scene parsing, word counting and validation.
"""

from .language import LanguageProfile, VIETNAMESE, ENGLISH, PROFILES, get_profile
from .word_counter import count_words
from .validator import (
    SceneValidator,
    MIN_VISUAL_WORDS,
    build_scene_text,
    check_word_count,
    clean_voiceover,
    missing_voiceover_warning,
    normalize_scene_block,
    parse_scene_blocks,
    split_scenes
)

__all__ = [
    "LanguageProfile",
    "VIETNAMESE",
    "ENGLISH",
    "PROFILES",
    "get_profile",
    "count_words",
    "SceneValidator",
    "MIN_VISUAL_WORDS",
    "build_scene_text",
    "check_word_count",
    "clean_voiceover",
    "missing_voiceover_warning",
    "normalize_scene_block",
    "parse_scene_blocks",
    "split_scenes",
]

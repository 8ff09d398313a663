"""
Tests for scene parsing, normalization and validation.
"""

import pytest

from modules.scene_validator.language import ENGLISH, VIETNAMESE, get_profile
from modules.scene_validator.validator import (
    build_scene_text,
    check_word_count,
    missing_voiceover_warning,
    normalize_scene_block,
    parse_scene_blocks,
    split_scenes
)
from shared.errors import ValidationError
from shared.models.scene import Scene

VISUAL = "A wide shot of the old harbor at dawn with fishing boats"


def words(n: int) -> str:
    """Voiceover text of exactly n words."""
    return " ".join(f"word{i}" for i in range(n))


def scene_text(index: int, voiceover_words: int = 20, visual: str = VISUAL, annotate: bool = True) -> str:
    """English scene block in the canonical format."""
    annotation = f" ({voiceover_words} words)" if annotate else ""
    return f"Scene {index}: Title {index}\nImage: {visual}\nVoice-over: {words(voiceover_words)}{annotation}"


class TestCheckWordCount:
    """Test the tolerance window rule."""

    @pytest.mark.parametrize("actual", range(0, 31))
    def test_warning_iff_outside_window(self, actual):
        warning = check_word_count(1, actual, target=20, tolerance=3)
        outside = actual < 17 or actual > 23
        assert (warning is not None) == outside

    def test_diff_is_distance_past_nearest_bound(self):
        assert check_word_count(3, 35, 20, 3).diff == 12
        assert check_word_count(3, 10, 20, 3).diff == -7

    def test_boundaries_are_inclusive(self):
        assert check_word_count(1, 17, 20, 3) is None
        assert check_word_count(1, 23, 20, 3) is None

    def test_missing_voiceover_warning(self):
        warning = missing_voiceover_warning(4, 20, 3)
        assert warning.actual == 0
        assert warning.diff == -20


class TestParseSceneBlocks:
    """Test response splitting."""

    def test_preamble_dropped_and_keyed_by_number(self):
        text = "Sure, here you go:\n\n" + scene_text(4) + "\n\n" + scene_text(5)
        blocks = parse_scene_blocks(text)
        assert list(blocks) == [4, 5]
        assert blocks[4].startswith("Scene 4:")

    def test_last_duplicate_wins(self):
        text = scene_text(1, 10) + "\n\n" + scene_text(1, 20)
        assert "(20 words)" in parse_scene_blocks(text)[1]

    def test_empty_text(self):
        assert parse_scene_blocks("") == {}


class TestNormalizeSceneBlock:
    """Test annotation rewriting."""

    def test_rewrites_wrong_annotation(self):
        block = "Scene 1: Title\nImage: " + VISUAL + "\nVoice-over: one two three (10 words)"
        normalized, count = normalize_scene_block(block, ENGLISH)
        assert count == 3
        assert normalized.endswith("Voice-over: one two three (3 words)")

    def test_strips_markdown_emphasis(self):
        block = "Scene 1: Title\nImage: " + VISUAL + "\nVoice-over: **one two** three"
        normalized, count = normalize_scene_block(block, ENGLISH)
        assert count == 3
        assert "**" not in normalized

    def test_vietnamese_unit(self):
        block = "Scene 2: Tiêu đề\nHình ảnh: " + VISUAL + "\nLời dẫn: Mẹ kế không phải ác quỷ (9 từ)"
        normalized, count = normalize_scene_block(block, VIETNAMESE)
        assert count == 6
        assert normalized.endswith("Lời dẫn: Mẹ kế không phải ác quỷ (6 từ)")

    def test_missing_voiceover_returns_none(self):
        block = "Scene 1: Title\nImage: " + VISUAL
        normalized, count = normalize_scene_block(block, ENGLISH)
        assert count is None
        assert normalized == block


class TestValidateScene:
    """Test single scene validation."""

    def test_valid_scene(self, en_validator):
        result = en_validator.validate_scene(scene_text(2, 18))
        assert result.is_valid
        assert result.scene.index == 2
        assert result.scene.title == "Title 2"
        assert result.scene.word_count == 18
        assert result.issues == []

    def test_annotation_not_counted(self, en_validator):
        result = en_validator.validate_scene(scene_text(2, 18, annotate=True))
        assert result.scene.voiceover == words(18)

    def test_empty_scene(self, en_validator):
        result = en_validator.validate_scene("   ")
        assert result.issues == ["empty_scene"]
        assert result.scene is None

    def test_invalid_format(self, en_validator):
        result = en_validator.validate_scene("Intro: something\nImage: x")
        assert result.issues == ["invalid_format"]
        assert result.scene is None

    def test_missing_visual(self, en_validator):
        result = en_validator.validate_scene("Scene 1: Title\nVoice-over: " + words(20))
        assert "missing_visual" in result.issues
        assert not result.is_valid

    def test_visual_too_short(self, en_validator):
        result = en_validator.validate_scene(scene_text(1, 20, visual="A boat"))
        assert result.issues == ["visual_too_short"]

    def test_missing_voiceover(self, en_validator):
        result = en_validator.validate_scene("Scene 1: Title\nImage: " + VISUAL)
        assert result.issues == ["missing_voiceover"]
        assert result.scene.word_count == 0

    def test_word_window(self, en_validator):
        assert en_validator.validate_scene(scene_text(1, 20), target=20, tolerance=3).is_valid
        result = en_validator.validate_scene(scene_text(1, 30), target=20, tolerance=3)
        assert result.issues == ["word_count_out_of_range"]

    def test_bold_and_numbered_header(self, en_validator):
        result = en_validator.validate_scene("3. **Scene 3:** Arrival\nImage: " + VISUAL + "\nVoice-over: " + words(20))
        assert result.is_valid
        assert result.scene.index == 3
        assert result.scene.title == "Arrival"

    def test_vietnamese_scene(self, vi_validator):
        text = "Cảnh 2: Tiêu đề\nHình ảnh: " + VISUAL + "\nLời dẫn: " + words(20) + " (20 từ)"
        result = vi_validator.validate_scene(text)
        assert result.is_valid
        assert result.scene.index == 2
        assert result.scene.word_count == 20

    def test_english_profile_rejects_vietnamese_header(self, en_validator):
        result = en_validator.validate_scene("Cảnh 2: Tiêu đề\nImage: " + VISUAL)
        assert result.issues == ["invalid_format"]

    def test_detect_missing_fields(self, en_validator):
        assert en_validator.detect_missing_fields("Scene 1: Title") == ["visual", "voiceover"]
        assert en_validator.detect_missing_fields("nothing here") == ["format"]


class TestValidate:
    """Test whole-text validation."""

    def test_batch_range_with_start_index(self, en_validator):
        text = scene_text(4) + "\n\n" + scene_text(6)
        report = en_validator.validate(text, expected_count=3, start_index=4)
        assert report.total_expected == 3
        assert report.total_found == 2
        assert report.missing_indices == [5]
        assert report.completion_rate == 67
        assert [s.index for s in report.valid_scenes] == [4, 6]

    def test_invalid_scenes_reported(self, en_validator):
        text = scene_text(1) + "\n\n" + scene_text(2, visual="Too short")
        report = en_validator.validate(text, expected_count=2)
        assert [s.index for s in report.valid_scenes] == [1]
        assert report.invalid_scenes[0].scene.index == 2
        assert report.missing_indices == []
        assert report.completion_rate == 50

    def test_empty_text(self, en_validator):
        report = en_validator.validate("", expected_count=3)
        assert report.missing_indices == [1, 2, 3]
        assert report.completion_rate == 0

    def test_separator_lines_split_scenes(self, en_validator):
        text = scene_text(1) + "\n===\n" + scene_text(2)
        report = en_validator.validate(text, expected_count=2)
        assert report.completion_rate == 100

    def test_reconstructed_text_sorted(self, en_validator):
        text = scene_text(2) + "\n\n" + scene_text(1)
        report = en_validator.validate(text, expected_count=2)
        assert report.reconstructed_text.startswith("Scene 1:")
        assert "(20 words)" in report.reconstructed_text


def test_split_scenes_numbered_headers():
    text = "Intro\n1. Scene 1: A\nImage: x\n2. Scene 2: B\nImage: y"
    parts = split_scenes(text, ENGLISH)
    assert len(parts) == 2
    assert parts[1].startswith("2. Scene 2")


def test_build_scene_text():
    scene = Scene(index=3, title="Arrival", visual="Boats", voiceover="one two", word_count=2)
    assert build_scene_text(scene, VIETNAMESE) == "Scene 3: Arrival\nHình ảnh: Boats\nLời dẫn: one two (2 từ)"


def test_get_profile_unknown_language():
    with pytest.raises(ValidationError, match="Unsupported language"):
        get_profile("fr")

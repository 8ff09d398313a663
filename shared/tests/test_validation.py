"""
Tests for shared input validation.
"""

import pytest

from shared.errors import ValidationError
from shared.validation import (
    parse_job_inputs,
    validate_input_text,
    validate_scene_count,
    validate_word_window
)


def test_validate_input_text_accepts_text():
    validate_input_text("Tin tức hôm nay")


@pytest.mark.parametrize("text", [None, "", "   ", 42])
def test_validate_input_text_rejects(text):
    with pytest.raises(ValidationError):
        validate_input_text(text)


def test_validate_input_text_max_length():
    with pytest.raises(ValidationError, match="at most 10 characters"):
        validate_input_text("x" * 11, max_length=10)


def test_validate_word_window():
    validate_word_window(20, 3)
    validate_word_window(20, 0)
    with pytest.raises(ValidationError, match="must be smaller than target"):
        validate_word_window(5, 5)
    with pytest.raises(ValidationError):
        validate_word_window(0, 0)
    with pytest.raises(ValidationError):
        validate_word_window(20, -1)


def test_validate_scene_count():
    validate_scene_count(1)
    validate_scene_count(300)
    with pytest.raises(ValidationError):
        validate_scene_count(0)
    with pytest.raises(ValidationError):
        validate_scene_count(1001)


def test_parse_job_inputs_splits_on_separator_lines():
    raw = "First job\nline two\n---\nSecond job\n  ---  \n\n---\nThird --- inline"
    assert parse_job_inputs(raw) == ["First job\nline two", "Second job", "Third --- inline"]


def test_parse_job_inputs_empty():
    assert parse_job_inputs("") == []
    assert parse_job_inputs("---\n---") == []

"""
Tests for deterministic word counting.
"""

import pytest

from modules.scene_validator.word_counter import count_words


@pytest.mark.parametrize("text,expected", [
    ("Mẹ kế không phải ác quỷ", 6),
    ("trong thời kỳ khủng hoảng", 5),
    ("bà ta là nhà quản lý nguồn lực", 8),
    ("The stepmother is not a devil.", 6),
    ("Hello, world! (quietly)", 3),
    ("well-known — facts", 3),
    ("“Quoted” ‘text’ [here] {there}", 4),
    ("", 0),
    ("   \n\t ", 0),
])
def test_count_words(text, expected):
    assert count_words(text) == expected


def test_punctuation_only_counts_zero():
    assert count_words("... !!! ???") == 0

"""
Deterministic voiceover word counting.

Counts whitespace-separated tokens after stripping punctuation. For
Vietnamese this counts syllables, which is what voiceover timing is
based on ("nhà quản lý" counts as 3).
"""

import re

_PUNCTUATION = re.compile(r"[.,;:!?\"“”'‘’()—–\-\[\]{}]")


def count_words(text: str) -> int:
    """
    Count words in voiceover text.

    Example:
        count_words("Mẹ kế không phải ác quỷ")  # 6
        count_words("The stepmother is not a devil.")  # 6
    """
    if not text or not text.strip():
        return 0
    return len(_PUNCTUATION.sub(" ", text).split())

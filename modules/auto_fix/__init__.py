"""
Auto Fix module exports.

Public API for structural scene repair.
"""

from .engine import AutoFixEngine, AutoFixOutcome, apply_fixes
from .prompts import build_fix_prompt, build_group_fix_prompt, fix_reasons

__all__ = [
    "AutoFixEngine",
    "AutoFixOutcome",
    "apply_fixes",
    "build_fix_prompt",
    "build_group_fix_prompt",
    "fix_reasons",
]

"""
Lenient JSON extraction from model output.

Models wrap JSON in code fences, prepend chatter and leave trailing
commas. parse_structured tries a strict parse first and then exactly one
repair pass, and reports which stage produced the value.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Literal, Optional

ParseStage = Literal["strict", "repaired"]

_FENCE = re.compile(r"```(?:json|JSON)?")
_OUTERMOST = re.compile(r"[\[\{][\s\S]*[\]\}]")
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")


@dataclass
class ParseError:
    message: str
    stage: ParseStage
    raw: str


@dataclass
class ParseResult:
    value: Any = None
    error: Optional[ParseError] = None
    stage: ParseStage = "strict"

    @property
    def ok(self) -> bool:
        return self.error is None


def strip_fences(text: str) -> str:
    return _FENCE.sub("", text or "").strip()


def locate_json(text: str) -> Optional[str]:
    """Outermost {...} or [...] region, or None when there is none."""
    match = _OUTERMOST.search(text)
    return match.group(0) if match else None


def remove_trailing_commas(text: str) -> str:
    return _TRAILING_COMMA.sub(r"\1", text)


def parse_structured(raw: str) -> ParseResult:
    """
    Parse JSON out of a model response.

    Args:
        raw: Model output, possibly fenced or surrounded by prose

    Returns:
        ParseResult with value set on success, error set otherwise
    """
    cleaned = strip_fences(raw)
    candidate = locate_json(cleaned)
    if candidate is None:
        return ParseResult(error=ParseError("No JSON object or array found", "strict", raw))

    try:
        return ParseResult(value=json.loads(candidate), stage="strict")
    except json.JSONDecodeError:
        pass

    repaired = remove_trailing_commas(candidate)
    try:
        return ParseResult(value=json.loads(repaired), stage="repaired")
    except json.JSONDecodeError as e:
        return ParseResult(error=ParseError(f"Invalid JSON: {e.msg} at position {e.pos}", "repaired", raw), stage="repaired")

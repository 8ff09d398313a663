"""
Step-scoped error tracking.

Keeps a bounded in-memory history of pipeline events per step so an
operator can see where a run is struggling, and mirrors every entry to
the structured logger.
"""

import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from shared.logging import get_logger

logger = get_logger("error_tracking")

ErrorLevel = Literal["INFO", "WARNING", "ERROR", "CRITICAL"]

STEP_NAMES: Dict[int, str] = {
    0: "Batch Queue",
    1: "Research & Ideas",
    2: "Create Outline",
    3: "Write Script",
    4: "Extract Prompts",
    5: "Voice Over",
    6: "Metadata",
}

MAX_HISTORY = 100

_LOG_METHODS = {
    "INFO": "info",
    "WARNING": "warning",
    "ERROR": "error",
    "CRITICAL": "critical",
}


def step_name(step: int) -> str:
    """Display name for a pipeline step."""
    return STEP_NAMES.get(step, f"Step {step}")


class ErrorDetail(BaseModel):
    """A single tracked event."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    level: ErrorLevel
    step: int
    step_name: str
    message: str
    batch_index: Optional[int] = None
    scene_range: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)


class ErrorSummary(BaseModel):
    """Aggregate view over the tracked history."""

    total_errors: int
    by_level: Dict[str, int]
    by_step: Dict[int, int]
    last_error: Optional[ErrorDetail] = None


class ErrorTracker:
    """Bounded history of pipeline errors, grouped by step."""

    def __init__(self, max_history: int = MAX_HISTORY):
        self._errors: Deque[ErrorDetail] = deque(maxlen=max_history)
        self._subscribers: List[Callable[[List[ErrorDetail]], None]] = []
        self._lock = threading.Lock()

    def log(
        self,
        step: int,
        message: str,
        level: ErrorLevel = "ERROR",
        batch_index: Optional[int] = None,
        scene_range: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ) -> ErrorDetail:
        """Record an event and mirror it to the structured log."""
        detail = ErrorDetail(
            level=level,
            step=step,
            step_name=step_name(step),
            message=message,
            batch_index=batch_index,
            scene_range=scene_range,
            context=context or {},
        )
        with self._lock:
            self._errors.append(detail)
            snapshot = list(self._errors)

        log_method = getattr(logger, _LOG_METHODS[level])
        log_method(
            f"[{level}] Step {step}: {message}",
            extra={
                "tracked_step": step,
                "step_name": detail.step_name,
                "batch_index": batch_index,
                "scene_range": scene_range,
                **{f"ctx_{k}": v for k, v in detail.context.items()},
            }
        )

        for subscriber in list(self._subscribers):
            subscriber(snapshot)
        return detail

    def subscribe(self, callback: Callable[[List[ErrorDetail]], None]) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def get_last_n(self, n: int = 10) -> List[ErrorDetail]:
        with self._lock:
            return list(self._errors)[-n:] if n > 0 else []

    def get_by_step(self, step: int) -> List[ErrorDetail]:
        with self._lock:
            return [e for e in self._errors if e.step == step]

    def summary(self) -> ErrorSummary:
        """Counts by level and by step plus the most recent entry."""
        with self._lock:
            errors = list(self._errors)

        by_level = {level: 0 for level in _LOG_METHODS}
        by_step: Dict[int, int] = {}
        for e in errors:
            by_level[e.level] += 1
            by_step[e.step] = by_step.get(e.step, 0) + 1

        return ErrorSummary(
            total_errors=len(errors),
            by_level=by_level,
            by_step=by_step,
            last_error=errors[-1] if errors else None,
        )

    def format_for_display(self, errors: Optional[List[ErrorDetail]] = None) -> str:
        entries = errors if errors is not None else self.get_last_n(5)
        if not entries:
            return "(No errors recorded)"

        lines = []
        for e in entries:
            scene_info = f" [Scene {e.scene_range}]" if e.scene_range else ""
            lines.append(
                f"[{e.timestamp.strftime('%H:%M:%S')}] {e.level} - {e.step_name}{scene_info}: {e.message}"
            )
        return "\n".join(lines)

    @staticmethod
    def format_single_error(
        step: int,
        batch_index: Optional[int] = None,
        scene_range: Optional[str] = None,
        details: Optional[List[str]] = None
    ) -> str:
        """One-line description of where a failure happened, plus detail bullets."""
        parts = [step_name(step)]
        if batch_index is not None:
            parts.append(f"Batch {batch_index + 1}")
        if scene_range:
            parts.append(f"Scene {scene_range}")

        text = " | ".join(parts)
        if details:
            text += "\n" + "\n".join(f"  - {d}" for d in details)
        return text

    def clear(self) -> None:
        with self._lock:
            self._errors.clear()


# Process default; components accept an injected tracker for isolation
error_tracker = ErrorTracker()

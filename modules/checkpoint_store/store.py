"""
Checkpoint store.

Persists the queue snapshot as one JSON file. Writes are atomic (temp file
then rename) and run in a worker thread so the event loop keeps going. A
failed write keeps the snapshot pending; the next save writes the newest
snapshot instead.
"""

import asyncio
import json
import os
import tempfile
import time
from datetime import timedelta
from pathlib import Path
from typing import Optional, Set, Union

from pydantic import ValidationError as PydanticValidationError

from shared.config import settings
from shared.errors import CheckpointError
from shared.logging import get_logger
from shared.models.checkpoint import CheckpointState

logger = get_logger("checkpoint_store")


def now_ms() -> int:
    return int(time.time() * 1000)


def _write_atomic(path: Path, payload: str) -> None:
    temp_path: Optional[Path] = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile("w", encoding="utf-8", dir=path.parent, delete=False) as handle:
            temp_path = Path(handle.name)
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, path)
    except OSError as e:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        raise CheckpointError(f"Failed to write checkpoint {path}: {e}") from e


class CheckpointStore:
    """Single-slot persistence for the scheduler's queue state."""

    def __init__(self, path: Union[str, Path], max_age: timedelta = timedelta(hours=24)):
        self.path = Path(path)
        self.max_age = max_age
        self._pending: Optional[CheckpointState] = None
        self._lock = asyncio.Lock()
        self._tasks: Set["asyncio.Task[bool]"] = set()

    @classmethod
    def from_settings(cls) -> "CheckpointStore":
        return cls(settings.checkpoint_path, max_age=timedelta(hours=settings.checkpoint_max_age_hours))

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    async def save(self, state: CheckpointState) -> bool:
        """
        Write a snapshot.

        Returns:
            True when the newest snapshot reached disk, False when the write
            failed and the snapshot is still pending
        """
        self._pending = state
        async with self._lock:
            current = self._pending
            if current is None:
                # A concurrent save already wrote the newest snapshot
                return True
            try:
                await asyncio.to_thread(_write_atomic, self.path, current.to_json())
            except CheckpointError as e:
                logger.error(
                    "Checkpoint save failed, will retry on next save",
                    extra={"path": str(self.path), "error": str(e)}
                )
                return False

            if self._pending is current:
                self._pending = None
            logger.debug(
                "Checkpoint saved",
                extra={"path": str(self.path), "pending_jobs": len(current.jobs), "processed_jobs": len(current.processed_jobs)}
            )
            return True

    def save_in_background(self, state: CheckpointState) -> "asyncio.Task[bool]":
        """Schedule a save without awaiting it; outcome is logged."""
        task = asyncio.create_task(self.save(state))
        self._tasks.add(task)
        task.add_done_callback(self._on_saved)
        return task

    def _on_saved(self, task: "asyncio.Task[bool]") -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Background checkpoint save cancelled", extra={"path": str(self.path)})
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"Background checkpoint save raised: {error}",
                extra={"path": str(self.path)},
                exc_info=error
            )

    async def flush(self) -> bool:
        """Wait for outstanding background saves, then retry a pending snapshot."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        if self._pending is not None:
            return await self.save(self._pending)
        return True

    def load(self) -> Optional[CheckpointState]:
        """Read the snapshot; a missing or unreadable file counts as absent."""
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return CheckpointState.model_validate(data)
        except (OSError, json.JSONDecodeError, PydanticValidationError) as e:
            logger.warning(
                "Ignoring unreadable checkpoint",
                extra={"path": str(self.path), "error": str(e)}
            )
            return None

    def has_resumable(self, now: Optional[int] = None) -> bool:
        """True when a recent snapshot with at least one pending job exists."""
        state = self.load()
        if state is None:
            return False
        now = now if now is not None else now_ms()
        is_recent = now - state.last_updated < self.max_age.total_seconds() * 1000
        return is_recent and len(state.jobs) > 0

    @staticmethod
    def age_of(state: CheckpointState, now: Optional[int] = None) -> str:
        now = now if now is not None else now_ms()
        minutes = max(now - state.last_updated, 0) // 60000
        if minutes < 60:
            return f"{minutes} minutes ago"
        return f"{minutes // 60} hours ago"

    def clear(self) -> None:
        self._pending = None
        self.path.unlink(missing_ok=True)
        logger.info("Checkpoint cleared", extra={"path": str(self.path)})

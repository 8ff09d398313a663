"""
Checkpoint store module exports.

Public API for persisting and restoring queue state.
"""

from .store import CheckpointStore, now_ms

__all__ = [
    "CheckpointStore",
    "now_ms",
]

"""
Pytest fixtures for checkpoint store tests.
"""
import pytest

from modules.checkpoint_store.store import CheckpointStore
from shared.models.checkpoint import CheckpointState, RunConfig
from shared.models.job import Job, PartialOutputs
from shared.models.scene import SceneWarning

NOW_MS = 1_700_000_000_000


@pytest.fixture
def now():
    """Fixed epoch milliseconds used as 'now'."""
    return NOW_MS


@pytest.fixture
def store(tmp_path):
    """Store writing into a temporary directory."""
    return CheckpointStore(tmp_path / "checkpoints" / "queue_state.json")


@pytest.fixture
def make_state():
    """Build a checkpoint with the given pending/processed counts."""
    def _make(pending=2, processed=1, last_updated=NOW_MS):
        jobs = [
            Job(
                input_text=f"Input {i}",
                status="processing" if i == 0 else "pending",
                current_step=3 if i == 0 else 2,
                completed_batches=4 if i == 0 else 0,
                partial_outputs=PartialOutputs(outline="Scene 1: Opening\nImage: x\nVoice-over: y (1 words)"),
                warnings=[SceneWarning(scene_index=2, actual=30, target=20, tolerance=3, diff=10)]
            )
            for i in range(pending)
        ]
        done = [
            Job(input_text=f"Done {i}", status="completed", current_step=6, outputs={2: "outline", 6: "metadata"})
            for i in range(processed)
        ]
        return CheckpointState(
            jobs=jobs,
            processed_jobs=done,
            config=RunConfig.from_window(scene_count=30, target=20, tolerance=3, delay_seconds=1.5),
            last_updated=last_updated
        )
    return _make

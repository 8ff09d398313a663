"""
Pytest fixtures for scheduler, pipeline and plan mode tests.
"""
import asyncio

import pytest

from modules.batch_orchestrator.orchestrator import END_OF_OUTLINE, END_OF_SCRIPT
from modules.checkpoint_store.store import CheckpointStore
from modules.credential_pool.pool import CredentialPools
from modules.providers.factory import AdapterFactory
from modules.scheduler.scheduler import JobScheduler
from shared.error_tracking import ErrorTracker
from shared.errors import GenerationError, JobFailedError
from shared.models.checkpoint import RunConfig
from shared.models.scene import BatchResult, SceneWarning


class RecordingSleep:
    """Awaitable sleep that records delays instead of waiting."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class FakeOrchestrator:
    """Stands in for BatchOrchestrator; records calls and can fail on demand."""

    def __init__(self, scenes_per_batch=3):
        self.scenes_per_batch = scenes_per_batch
        self.calls = []
        self.failures = {}

    def fail(self, method, error, times=1):
        self.failures[method] = [error] * times

    def _maybe_fail(self, method):
        pending = self.failures.get(method)
        if pending:
            raise pending.pop(0)

    def _range(self, batch_index, scene_count):
        start = batch_index * self.scenes_per_batch + 1
        return start, min(start + self.scenes_per_batch - 1, scene_count)

    async def outline_batch(self, input_text, outline, batch_index, scene_count, target, tolerance, progress=None):
        self.calls.append(("outline", batch_index))
        self._maybe_fail("outline")
        start, end = self._range(batch_index, scene_count)
        if start > scene_count:
            return BatchResult(content=END_OF_OUTLINE, start_index=start, end_index=scene_count, end_of_step=True)
        warnings = []
        if batch_index == 0:
            warnings = [SceneWarning(scene_index=1, actual=30, target=target, tolerance=tolerance, diff=30 - target - tolerance)]
        content = "\n\n".join(f"Scene {i}: Outline {i}" for i in range(start, end + 1))
        return BatchResult(content=content, warnings=warnings, start_index=start, end_index=end)

    async def outline_batch_with_auto_fix(self, *args, **kwargs):
        self.calls.append(("auto_fix", args[2]))
        return await self.outline_batch(*args, **kwargs)

    async def script_batch(self, outline, previous_script, batch_index, scene_count, progress=None):
        self.calls.append(("script", batch_index))
        self._maybe_fail("script")
        start, end = self._range(batch_index, scene_count)
        if start > scene_count:
            return BatchResult(content=END_OF_SCRIPT, start_index=start, end_index=scene_count, end_of_step=True)
        content = "\n\n".join(f"Scene {i}: Script {i}" for i in range(start, end + 1))
        return BatchResult(content=content, start_index=start, end_index=end)

    async def prompts_batch(self, script, progress=None):
        self.calls.append(("prompts", None))
        self._maybe_fail("prompts")
        return '{"imagePrompts": [], "videoPrompts": []}'

    async def extract_voiceover(self, script, progress=None):
        self.calls.append(("voiceover", None))
        self._maybe_fail("voiceover")
        return "voiceover"

    async def create_metadata(self, script, progress=None):
        self.calls.append(("metadata", None))
        self._maybe_fail("metadata")
        return "metadata"

    async def research(self, keyword, adapter=None, progress=None):
        self.calls.append(("research", keyword, adapter.fallback_key if adapter else None))
        if "fail" in keyword:
            raise GenerationError(f"429 quota exceeded for {keyword}")
        return f"Topic for {keyword}"


class FakePipeline:
    """Pipeline stub whose outcome per job is decided by a function of (job, attempt)."""

    def __init__(self, outcome=None):
        self.outcome = outcome or (lambda job, attempt: True)
        self.checkpoint = None
        self.runs = []
        self.on_run = None

    async def run(self, job, config, progress=None):
        self.runs.append((job.input_text, job.attempts))
        if self.on_run is not None:
            self.on_run(job)
        await asyncio.sleep(0)
        if not self.outcome(job, job.attempts):
            raise JobFailedError("boom", job_id=job.id, step=3, attempts=job.attempts, last_error="boom")
        job.status = "completed"
        await self.checkpoint(job)
        return job


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def tracker():
    return ErrorTracker()


@pytest.fixture
def run_config():
    """Six scenes, 20±3 words."""
    return RunConfig.from_window(scene_count=6, target=20, tolerance=3)


@pytest.fixture
def store(tmp_path):
    return CheckpointStore(tmp_path / "queue_state.json")


@pytest.fixture
def orchestrator():
    return FakeOrchestrator()


@pytest.fixture
def make_scheduler(sleep, tracker, run_config, store):
    """Scheduler around a FakePipeline with the given outcome function."""
    def _make(outcome=None, max_queue_size=20):
        pipeline = FakePipeline(outcome)
        scheduler = JobScheduler(
            pipeline,
            run_config=run_config,
            store=store,
            tracker=tracker,
            max_queue_size=max_queue_size,
            breaker_threshold=2,
            sleep=sleep
        )
        return scheduler, pipeline
    return _make


@pytest.fixture
def plan_factory():
    """Adapter factory with three pooled Gemini keys."""
    pools = CredentialPools()
    pools.get("google").add_keys([f"google-key-{i}-abcdefghijklmnop" for i in range(3)])
    return AdapterFactory(pools=pools)

"""
Pytest fixtures for auto-fix tests.
"""
import asyncio

import pytest

from modules.auto_fix.engine import AutoFixEngine
from modules.scene_validator.language import ENGLISH
from shared.error_tracking import ErrorTracker
from shared.models.generation import GenerationResponse

SLOW = object()


class FakeAdapter:
    """Returns scripted responses; exceptions are raised, SLOW blocks."""

    def __init__(self, script):
        self.script = list(script)
        self.requests = []

    async def generate(self, request):
        self.requests.append(request)
        outcome = self.script.pop(0) if self.script else ""
        if outcome is SLOW:
            await asyncio.sleep(5)
        if isinstance(outcome, BaseException):
            raise outcome
        return GenerationResponse(content=outcome, model="fake")


class StubFactory:
    """Hands the same adapter out for every step."""

    def __init__(self, adapter):
        self.adapter = adapter
        self.steps = []

    def adapter_for_step(self, step):
        self.steps.append(step)
        return self.adapter


@pytest.fixture
def tracker():
    """Isolated error tracker."""
    return ErrorTracker()


@pytest.fixture
def make_engine(tracker):
    """Build an English AutoFixEngine around a scripted adapter."""
    def _make(script, **kwargs):
        adapter = FakeAdapter(script)
        kwargs.setdefault("timeout", 1.0)
        kwargs.setdefault("max_scenes", 5)
        kwargs.setdefault("max_passes", 3)
        engine = AutoFixEngine(StubFactory(adapter), profile=ENGLISH, tracker=tracker, **kwargs)
        return engine, adapter
    return _make


@pytest.fixture
def slow():
    """Script entry that blocks longer than any engine timeout under test."""
    return SLOW

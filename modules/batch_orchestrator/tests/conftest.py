"""
Pytest fixtures for batch orchestrator tests.
"""
import pytest

from modules.batch_orchestrator.orchestrator import BatchOrchestrator
from modules.batch_orchestrator.prompts import StaticPromptLibrary
from modules.providers.base import BaseAdapter, classify_message
from modules.providers.registry import get_model
from modules.scene_validator.language import ENGLISH
from shared.error_tracking import ErrorTracker
from shared.models.generation import GenerationResponse
from shared.retry import RetryPolicy


async def _no_sleep(delay):
    return None


class RespondingAdapter(BaseAdapter):
    """Adapter whose replies are computed from the request by a responder function."""

    def __init__(self, responder):
        super().__init__(
            get_model("gemini-2.5-flash"),
            fallback_key="test-fallback-key-0123456789",
            policy=RetryPolicy(max_attempts=1, base_delay=0),
            sleep=_no_sleep
        )
        self.responder = responder
        self.requests = []

    async def _call(self, request, api_key):
        self.requests.append(request)
        outcome = self.responder(request)
        if isinstance(outcome, BaseException):
            raise outcome
        return GenerationResponse(content=outcome, model=self.model_id)

    def _classify(self, error):
        return classify_message(str(error), self.provider, self.model_id, original_error=error)


class StepFactory:
    """Maps steps to adapters; unmapped steps share the default adapter."""

    def __init__(self, default, **by_step):
        self.default = default
        self.by_step = {int(k.replace("step", "")): v for k, v in by_step.items()}

    def adapter_for_step(self, step):
        return self.by_step.get(step, self.default)


@pytest.fixture
def tracker():
    """Isolated error tracker."""
    return ErrorTracker()


@pytest.fixture
def progress_log():
    """List collecting (step, message, attempt) progress events."""
    return []


@pytest.fixture
def make_orchestrator(tracker, progress_log):
    """Build an English orchestrator around responder functions."""
    def _make(responder, max_retries=5, **step_responders):
        default = RespondingAdapter(responder)
        adapters = {name: RespondingAdapter(fn) for name, fn in step_responders.items()}
        factory = StepFactory(default, **adapters)
        orchestrator = BatchOrchestrator(
            factory,
            StaticPromptLibrary(),
            profile=ENGLISH,
            tracker=tracker,
            scenes_per_batch=3,
            max_retries=max_retries,
            progress=lambda step, message, attempt: progress_log.append((step, message, attempt))
        )
        return orchestrator, default, adapters
    return _make

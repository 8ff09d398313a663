"""
Pytest fixtures for provider adapter tests.
"""
import pytest
from datetime import timedelta

from modules.credential_pool.pool import CredentialPool
from modules.providers.base import BaseAdapter, classify_message
from modules.providers.registry import get_model
from shared.errors import ProviderError
from shared.models.generation import GenerationRequest, GenerationResponse
from shared.retry import RetryPolicy


class ScriptedAdapter(BaseAdapter):
    """Adapter whose calls pop results from a script (exceptions are raised)."""

    def __init__(self, script, **kwargs):
        super().__init__(get_model("gemini-2.5-flash"), **kwargs)
        self.script = list(script)
        self.calls = []

    async def _call(self, request, api_key):
        self.calls.append((request, api_key))
        outcome = self.script.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return GenerationResponse(content=outcome, model=self.model_id)

    def _classify(self, error):
        return classify_message(str(error), self.provider, self.model_id, original_error=error)


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture
def sleep():
    """No-op sleep recording delays."""
    return RecordingSleep()


@pytest.fixture
def policy():
    """Provider retry policy: 3 attempts, 1s base, x2, 10s cap."""
    return RetryPolicy(max_attempts=3, base_delay=1.0, multiplier=2.0, max_delay=10.0)


@pytest.fixture
def keys():
    """Two pool keys."""
    return ["AIzaSyPoolKeyOne-xxxxxxxxxxxx", "AIzaSyPoolKeyTwo-yyyyyyyyyyyy"]


@pytest.fixture
def pool(keys):
    """Google pool seeded with two keys."""
    p = CredentialPool(provider="google", recovery_window=timedelta(minutes=5), max_errors=3)
    p.add_keys(keys)
    return p


@pytest.fixture
def request_():
    """A simple generation request."""
    return GenerationRequest(system_instruction="You are a writer.", user_message="Write scene 1.")


@pytest.fixture
def make_adapter(pool, policy, sleep):
    """Build a ScriptedAdapter sharing the pool, policy and sleep fixtures."""
    def _make(script, **kwargs):
        kwargs.setdefault("pool", pool)
        return ScriptedAdapter(script, policy=policy, sleep=sleep, **kwargs)
    return _make

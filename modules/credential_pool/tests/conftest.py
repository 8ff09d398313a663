"""
Pytest fixtures for credential pool tests.
"""
import pytest
from datetime import datetime, timedelta, timezone

from modules.credential_pool.pool import CredentialPool


class FakeClock:
    """Manually advanced clock."""

    def __init__(self):
        self.now = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds: float):
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock():
    """Create a controllable clock."""
    return FakeClock()


@pytest.fixture
def sample_keys():
    """Three distinct keys long enough to be accepted."""
    return [f"AIzaSyTestKey{i}-abcdefghijklmnop" for i in range(3)]


@pytest.fixture
def pool(clock, sample_keys):
    """Pool seeded with the sample keys."""
    p = CredentialPool(provider="google", recovery_window=timedelta(minutes=5), max_errors=3, clock=clock)
    p.add("\n".join(sample_keys))
    return p

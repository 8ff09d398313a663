"""
Tests for retry logic with exponential backoff.
"""

import pytest

from shared.errors import RateLimitError, RetryableError, ValidationError
from shared.retry import RetryPolicy, retry_async, retry_with_backoff


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def test_policy_delays():
    """Test that delays grow exponentially and respect the cap."""
    policy = RetryPolicy(max_attempts=6, base_delay=1.0, multiplier=2.0, max_delay=10.0)
    assert [policy.delay_for(i) for i in range(6)] == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0]


def test_job_policy_from_settings():
    policy = RetryPolicy.for_jobs()
    assert policy.max_attempts == 3
    assert [policy.delay_for(i) for i in range(2)] == [2.0, 4.0]


def test_provider_policy_from_settings():
    policy = RetryPolicy.for_providers()
    assert policy.max_attempts == 3
    assert policy.max_delay == 10.0


@pytest.mark.asyncio
async def test_retry_succeeds_on_first_attempt():
    """Test that function succeeds on first attempt."""
    sleep = RecordingSleep()
    calls = []

    async def successful_function():
        calls.append(1)
        return "success"

    assert await retry_async(successful_function, sleep=sleep) == "success"
    assert len(calls) == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_retry_succeeds_after_retries():
    """Test that function succeeds after retries."""
    sleep = RecordingSleep()
    calls = []

    async def flaky(value):
        calls.append(value)
        if len(calls) < 3:
            raise RetryableError("Temporary failure")
        return value

    result = await retry_async(flaky, "done", policy=RetryPolicy(base_delay=0.5), sleep=sleep)

    assert result == "done"
    assert len(calls) == 3
    assert sleep.delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_retry_fails_after_max_attempts():
    """Test that the last exception surfaces after max attempts."""
    sleep = RecordingSleep()
    calls = []

    async def always_fails():
        calls.append(1)
        raise RateLimitError("quota", provider="google")

    with pytest.raises(RateLimitError, match="quota"):
        await retry_async(always_fails, policy=RetryPolicy(max_attempts=3), sleep=sleep)

    assert len(calls) == 3
    assert len(sleep.delays) == 2


@pytest.mark.asyncio
async def test_non_retryable_error_raises_immediately():
    """Test that non-retryable errors are not retried."""
    sleep = RecordingSleep()
    calls = []

    async def invalid():
        calls.append(1)
        raise ValidationError("bad input")

    with pytest.raises(ValidationError):
        await retry_async(invalid, sleep=sleep)

    assert len(calls) == 1


@pytest.mark.asyncio
async def test_predicate_refines_retryable_types():
    calls = []

    async def fails():
        calls.append(1)
        raise RetryableError("permanent")

    with pytest.raises(RetryableError):
        await retry_async(
            fails,
            is_retryable=lambda e: "permanent" not in str(e),
            sleep=RecordingSleep()
        )

    assert len(calls) == 1


@pytest.mark.asyncio
async def test_on_retry_hook():
    events = []

    async def flaky():
        if not events:
            raise RetryableError("once")
        return "ok"

    def on_retry(attempt, error, delay):
        events.append((attempt, str(error), delay))

    assert await retry_async(flaky, policy=RetryPolicy(base_delay=2.0), on_retry=on_retry, sleep=RecordingSleep()) == "ok"
    assert events == [(1, "once", 2.0)]


@pytest.mark.asyncio
async def test_decorator_retries_async_function():
    """Test the decorator form on a coroutine function."""
    calls = []

    @retry_with_backoff(max_attempts=2, base_delay=0)
    async def probe():
        calls.append(1)
        if len(calls) < 2:
            raise RetryableError("network")
        return 200

    assert await probe() == 200
    assert probe.__name__ == "probe"


def test_decorator_retries_sync_function(monkeypatch):
    """Test the decorator form on a plain function."""
    delays = []
    monkeypatch.setattr("shared.retry.time.sleep", delays.append)
    calls = []

    @retry_with_backoff(max_attempts=3, base_delay=0.1)
    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise RetryableError("Retry")
        return "success"

    assert flaky() == "success"
    assert delays == [0.1, 0.2]

"""
Tests for the retry policy.
"""
import asyncio

import pytest

from kondo_scraping.errors import FetchNetworkError, FetchServerError
from kondo_scraping.utils.retry import RetryPolicy


class Flaky:
    """Fails a fixed number of times, then returns a value."""

    def __init__(self, failures, error_type=FetchNetworkError):
        self.failures = failures
        self.error_type = error_type
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error_type(f"attempt {self.calls} failed")
        return "ok"


class TestRetryPolicy:
    """Tests for RetryPolicy.with_retry."""

    def _policy(self, sleeps, max_attempts=3):
        async def record_sleep(seconds):
            sleeps.append(seconds)

        return RetryPolicy(max_attempts=max_attempts, delay_ms=100, backoff_multiplier=2, sleep=record_sleep)

    def test_succeeds_after_transient_failures(self):
        """Test that the result of the first successful attempt is returned."""
        sleeps = []
        operation = Flaky(failures=2)

        result = asyncio.run(self._policy(sleeps).with_retry(operation))

        assert result == "ok"
        assert operation.calls == 3

    def test_backoff_is_exponential(self):
        """Test that delays grow by the backoff multiplier."""
        sleeps = []
        operation = Flaky(failures=2)

        asyncio.run(self._policy(sleeps).with_retry(operation))

        assert sleeps == [0.1, 0.2]

    def test_raises_last_error_when_exhausted(self):
        """Test that the final attempt's exception propagates."""
        sleeps = []
        operation = Flaky(failures=5, error_type=FetchServerError)

        with pytest.raises(FetchServerError, match="attempt 3 failed"):
            asyncio.run(self._policy(sleeps).with_retry(operation))

        assert operation.calls == 3
        # No sleep after the final attempt
        assert len(sleeps) == 2

    def test_per_call_attempt_override(self):
        """Test that max_attempts passed to with_retry wins over the policy."""
        sleeps = []
        operation = Flaky(failures=5)

        with pytest.raises(FetchNetworkError):
            asyncio.run(self._policy(sleeps).with_retry(operation, max_attempts=1))

        assert operation.calls == 1
        assert sleeps == []

    def test_no_retry_on_success(self):
        """Test that a first-try success never sleeps."""
        sleeps = []
        operation = Flaky(failures=0)

        asyncio.run(self._policy(sleeps).with_retry(operation))

        assert operation.calls == 1
        assert sleeps == []

    def test_compute_delay(self):
        """Test delay_ms * multiplier ** (attempt - 1)."""
        policy = RetryPolicy(max_attempts=4, delay_ms=1000, backoff_multiplier=2)

        assert policy.compute_delay_ms(1) == 1000
        assert policy.compute_delay_ms(2) == 2000
        assert policy.compute_delay_ms(3) == 4000

"""Tests for RetryPolicy and call_with_retry."""

import asyncio

import pytest

from helmsman.application.retry import RetryPolicy, call_with_retry
from helmsman.domain.exceptions import ConfigurationConflict, ExternalCallFailure


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


class Flaky:
    """Fails ``failures`` times, then returns ``result``."""

    def __init__(self, failures, result="ok", error=RuntimeError("boom")):
        self.failures = failures
        self.result = result
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.result


class TestRetryPolicy:
    def test_exponential_delays_without_jitter(self):
        policy = RetryPolicy(base_delay_seconds=1.0, max_delay_seconds=30.0, jitter=False)
        assert [policy.delay_for(n) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]

    def test_delay_is_capped(self):
        policy = RetryPolicy(base_delay_seconds=10.0, max_delay_seconds=15.0, jitter=False)
        assert policy.delay_for(4) == 15.0

    def test_jitter_stays_within_half_to_full_delay(self):
        policy = RetryPolicy(base_delay_seconds=2.0, jitter=True)
        for _ in range(50):
            assert 1.0 <= policy.delay_for(1) <= 2.0

    @pytest.mark.parametrize("kwargs", [{"max_attempts": 0}, {"timeout_seconds": 0}])
    def test_invalid_policy(self, kwargs):
        with pytest.raises(ConfigurationConflict):
            RetryPolicy(**kwargs)


class TestCallWithRetry:
    @pytest.mark.asyncio
    async def test_first_attempt_succeeds(self):
        sleep = RecordingSleep()
        result, attempts = await call_with_retry(Flaky(0), RetryPolicy(), "op", sleep=sleep)
        assert result == "ok"
        assert attempts == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_recovers_after_failures(self):
        sleep = RecordingSleep()
        op = Flaky(2)
        policy = RetryPolicy(max_attempts=3, jitter=False)

        result, attempts = await call_with_retry(op, policy, "op", sleep=sleep)

        assert result == "ok"
        assert attempts == 3
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhausted_raises_external_call_failure(self):
        sleep = RecordingSleep()
        op = Flaky(5, error=ConnectionError("refused"))

        with pytest.raises(ExternalCallFailure) as exc_info:
            await call_with_retry(op, RetryPolicy(max_attempts=3), "set pools", sleep=sleep)

        assert op.calls == 3
        assert len(sleep.delays) == 2
        assert exc_info.value.attempts == 3
        assert exc_info.value.operation == "set pools"
        assert isinstance(exc_info.value.last_error, ConnectionError)
        assert "refused" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_configuration_conflict_is_not_retried(self):
        op = Flaky(5, error=ConfigurationConflict("bad request"))

        with pytest.raises(ConfigurationConflict):
            await call_with_retry(op, RetryPolicy(), "op", sleep=RecordingSleep())

        assert op.calls == 1

    @pytest.mark.asyncio
    async def test_each_attempt_is_time_bounded(self):
        async def hang():
            await asyncio.sleep(10)

        policy = RetryPolicy(max_attempts=2, timeout_seconds=0.01)
        with pytest.raises(ExternalCallFailure) as exc_info:
            await call_with_retry(hang, policy, "op", sleep=RecordingSleep())

        assert isinstance(exc_info.value.last_error, TimeoutError)

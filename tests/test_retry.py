"""
Tests for retry policy configuration and the retry executor.
"""

import asyncio

import pytest

from bulwark.core.backoff import DecorrelatedJitter, FixedDelay
from bulwark.core.classifier import FaultClassifier
from bulwark.core.executor import RetryExecutor
from bulwark.core.policy import (
    BREAKER_RETRY_POLICY,
    DEFAULT_RETRY_POLICY,
    NO_RETRY_POLICY,
    RetryPolicy,
)
from bulwark.exceptions import ApiConnectionError, ApiError, CircuitBreakerOpenError, ConfigurationError


def failing(times: int, error_factory=lambda: ApiConnectionError("kablooey!"), result="success"):
    """Operation failing ``times`` times before returning ``result``."""
    calls = {"count": 0}

    async def operation():
        calls["count"] += 1
        if calls["count"] <= times:
            raise error_factory()
        return result

    operation.calls = calls
    return operation


class TestRetryPolicy:
    """Tests for RetryPolicy configuration."""

    def test_default_values(self):
        policy = RetryPolicy()
        assert policy.max_attempts == 50
        assert policy.seed_delay == 0.05
        assert policy.max_delay == 5.0
        assert policy.forever is False
        assert policy.retry_on_circuit_open is True
        assert policy.max_duration is None

    def test_presets(self):
        assert DEFAULT_RETRY_POLICY.forever is False
        assert BREAKER_RETRY_POLICY.forever is True
        assert BREAKER_RETRY_POLICY.fixed_delay == 0.25
        assert NO_RETRY_POLICY.max_attempts == 0

    def test_validation_max_attempts(self):
        with pytest.raises(ConfigurationError, match="max_attempts must be >= 0"):
            RetryPolicy(max_attempts=-1)

    def test_validation_max_delay(self):
        with pytest.raises(ConfigurationError, match="max_delay must be >= seed_delay"):
            RetryPolicy(seed_delay=10.0, max_delay=5.0)

    def test_validation_fixed_delay(self):
        with pytest.raises(ConfigurationError, match="fixed_delay must be >= 0"):
            RetryPolicy(fixed_delay=-0.1)

    def test_validation_max_duration(self):
        with pytest.raises(ConfigurationError, match="max_duration must be > 0"):
            RetryPolicy(max_duration=0)

    def test_delays_bounded(self):
        delays = RetryPolicy(max_attempts=4).delays()
        assert isinstance(delays, DecorrelatedJitter)
        assert len(list(delays)) == 4

    def test_delays_forever(self):
        delays = RetryPolicy(forever=True, fixed_delay=0.5).delays()
        assert delays == FixedDelay(0.5)

    def test_should_retry(self):
        policy = RetryPolicy()
        assert policy.should_retry(ApiConnectionError("down")) is True
        assert policy.should_retry(ApiError("unavailable", 503)) is True
        assert policy.should_retry(CircuitBreakerOpenError("api")) is True
        assert policy.should_retry(ApiError("bad request", 400)) is False

    def test_should_retry_circuit_open_disabled(self):
        policy = RetryPolicy(retry_on_circuit_open=False)
        assert policy.should_retry(CircuitBreakerOpenError("api")) is False


class TestRetryExecutor:
    """Tests for RetryExecutor execution."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self, sleep):
        executor = RetryExecutor(sleep=sleep)
        operation = failing(0)
        assert await executor.execute(operation) == "success"
        assert operation.calls["count"] == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_k_transient_failures_means_k_waits(self, sleep):
        executor = RetryExecutor(RetryPolicy(max_attempts=5), sleep=sleep)
        operation = failing(3)
        assert await executor.execute(operation) == "success"
        assert operation.calls["count"] == 4
        assert len(sleep.delays) == 3

    @pytest.mark.asyncio
    async def test_waits_follow_backoff_sequence(self, sleep):
        policy = RetryPolicy(max_attempts=5, seed_delay=1.0, max_delay=100.0)
        executor = RetryExecutor(policy, random=lambda: 0.5, sleep=sleep)
        await executor.execute(failing(3))
        assert sleep.delays == pytest.approx([1.5, 2.25, 3.375])

    @pytest.mark.asyncio
    async def test_permanent_failure_no_retry(self, sleep):
        executor = RetryExecutor(sleep=sleep)
        operation = failing(10, lambda: ApiError("bad request", 400))
        with pytest.raises(ApiError, match="bad request"):
            await executor.execute(operation)
        assert operation.calls["count"] == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_exhaustion_reraises_last_error(self, sleep):
        counter = iter(range(100))
        executor = RetryExecutor(RetryPolicy(max_attempts=3), sleep=sleep)
        operation = failing(10, lambda: ApiConnectionError(f"failure {next(counter)}"))
        with pytest.raises(ApiConnectionError, match="failure 3"):
            await executor.execute(operation)
        assert operation.calls["count"] == 4
        assert len(sleep.delays) == 3

    @pytest.mark.asyncio
    async def test_no_retry_policy(self, sleep):
        executor = RetryExecutor(NO_RETRY_POLICY, sleep=sleep)
        operation = failing(1)
        with pytest.raises(ApiConnectionError):
            await executor.execute(operation)
        assert operation.calls["count"] == 1

    @pytest.mark.asyncio
    async def test_circuit_open_retried_by_default(self, sleep):
        executor = RetryExecutor(RetryPolicy(max_attempts=3), sleep=sleep)
        operation = failing(2, lambda: CircuitBreakerOpenError("api", 1.0))
        assert await executor.execute(operation) == "success"
        assert len(sleep.delays) == 2

    @pytest.mark.asyncio
    async def test_circuit_open_not_retried_when_disabled(self, sleep):
        executor = RetryExecutor(RetryPolicy(retry_on_circuit_open=False), sleep=sleep)
        with pytest.raises(CircuitBreakerOpenError):
            await executor.execute(failing(2, lambda: CircuitBreakerOpenError("api", 1.0)))
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_forever_mode_fixed_delay(self, sleep):
        executor = RetryExecutor(RetryPolicy(forever=True, fixed_delay=0.25), sleep=sleep)
        assert await executor.execute(failing(200)) == "success"
        assert sleep.delays == [0.25] * 200

    @pytest.mark.asyncio
    async def test_max_duration_caps_forever(self, clock, sleep):
        policy = RetryPolicy(forever=True, fixed_delay=1.0, max_duration=3.5)
        executor = RetryExecutor(policy, sleep=sleep, clock=clock)
        operation = failing(100)
        with pytest.raises(ApiConnectionError):
            await executor.execute(operation)
        assert sleep.delays == [1.0, 1.0, 1.0]
        assert operation.calls["count"] == 4

    @pytest.mark.asyncio
    async def test_custom_classifier(self, sleep):
        policy = RetryPolicy(max_attempts=3, classifier=FaultClassifier().with_status_codes({429}))
        executor = RetryExecutor(policy, sleep=sleep)
        assert await executor.execute(failing(2, lambda: ApiError("slow down", 429))) == "success"
        with pytest.raises(ApiError):
            await executor.execute(failing(2, lambda: ApiError("unavailable", 503)))


class TestRetryHooks:
    """Tests for on_retry notifications."""

    @pytest.mark.asyncio
    async def test_on_retry_arguments(self, sleep):
        seen = []
        executor = RetryExecutor(
            RetryPolicy(forever=True, fixed_delay=0.1),
            on_retry=lambda error, delay, attempt: seen.append((str(error), delay, attempt)),
            sleep=sleep,
        )
        await executor.execute(failing(3))
        assert seen == [("kablooey!", 0.1, 1), ("kablooey!", 0.1, 2), ("kablooey!", 0.1, 3)]

    @pytest.mark.asyncio
    async def test_failing_hook_is_ignored(self, sleep):
        def explode(*args):
            raise RuntimeError("hook bug")

        executor = RetryExecutor(RetryPolicy(max_attempts=3), on_retry=explode, sleep=sleep)
        assert await executor.execute(failing(2)) == "success"


class TestConcurrency:
    """Cancellation and concurrent callers."""

    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self):
        executor = RetryExecutor(RetryPolicy(forever=True, fixed_delay=60.0))
        operation = failing(100)

        task = asyncio.create_task(executor.execute(operation))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert operation.calls["count"] == 1

    @pytest.mark.asyncio
    async def test_concurrent_callers_do_not_share_backoff(self, sleep):
        executor = RetryExecutor(RetryPolicy(max_attempts=2), sleep=sleep)
        results = await asyncio.gather(*(executor.execute(failing(2)) for _ in range(10)))
        assert results == ["success"] * 10
        assert len(sleep.delays) == 20

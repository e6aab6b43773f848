"""
Tests for policy composition and the end-to-end chaos scenarios.
"""

import asyncio
import math

import pytest

from bulwark.core.circuit_breaker import CircuitBreaker, CircuitState
from bulwark.core.executor import RetryExecutor
from bulwark.core.policy import BREAKER_RETRY_POLICY, RetryPolicy
from bulwark.core.wrap import Policy, PolicyWrap, resilient_policy, wrap
from bulwark.exceptions import ApiConnectionError, ApiError, CircuitBreakerOpenError
from bulwark.testing import FaultInjector


async def send_message():
    return {"sid": "SM123"}


class Recorder:
    """Policy that records the order it was entered in."""

    def __init__(self, name, trail):
        self.name = name
        self.trail = trail

    async def execute(self, operation):
        self.trail.append(self.name)
        return await operation()


class TestComposition:
    """Tests for PolicyWrap and wrap()."""

    def test_policies_satisfy_protocol(self):
        breaker = CircuitBreaker()
        executor = RetryExecutor()
        assert isinstance(breaker, Policy)
        assert isinstance(executor, Policy)
        assert isinstance(PolicyWrap(executor, breaker), Policy)

    @pytest.mark.asyncio
    async def test_wrap_order_outermost_first(self):
        trail = []
        policy = wrap(Recorder("a", trail), Recorder("b", trail), Recorder("c", trail))
        assert await policy.execute(send_message) == {"sid": "SM123"}
        assert trail == ["a", "b", "c"]

    def test_wrap_single_policy(self):
        trail = []
        single = Recorder("only", trail)
        assert wrap(single) is single

    def test_wrap_requires_policy(self):
        with pytest.raises(ValueError):
            wrap()

    @pytest.mark.asyncio
    async def test_permanent_failure_passes_straight_through(self, clock, sleep):
        breaker = CircuitBreaker(5, 5.0, clock=clock)
        policy = PolicyWrap(RetryExecutor(BREAKER_RETRY_POLICY, sleep=sleep, clock=clock), breaker)

        async def bad_request():
            raise ApiError("bad request", 400)

        with pytest.raises(ApiError, match="bad request"):
            await policy.execute(bad_request)
        assert sleep.delays == []
        assert breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_bounded_retry_surfaces_breaker_rejection(self, clock, sleep):
        breaker = CircuitBreaker(5, 5.0, clock=clock)
        executor = RetryExecutor(
            RetryPolicy(max_attempts=7, seed_delay=0.1, max_delay=0.1), sleep=sleep, clock=clock
        )
        chaos = FaultInjector(send_message, fail_times=100, clock=clock)

        with pytest.raises(CircuitBreakerOpenError):
            await PolicyWrap(executor, breaker).execute(chaos)
        assert chaos.calls == 5
        assert len(sleep.delays) == 7

    def test_resilient_policy_shape(self):
        policy = resilient_policy(exceptions_allowed_before_breaking=3, duration_of_break=2.0, name="messaging")
        assert isinstance(policy.outer, RetryExecutor)
        assert isinstance(policy.inner, CircuitBreaker)
        assert policy.outer.policy is BREAKER_RETRY_POLICY
        assert policy.inner.name == "messaging"
        assert policy.inner.exceptions_allowed_before_breaking == 3


class TestChaosScenarios:
    """The breaker and composed policy against a fault-injecting client."""

    @pytest.mark.asyncio
    async def test_breaker_alone(self, clock):
        events = []
        breaker = CircuitBreaker(
            5,
            5.0,
            clock=clock,
            on_break=lambda error, duration: events.append("break"),
            on_half_open=lambda: events.append("half_open"),
            on_reset=lambda: events.append("reset"),
        )
        chaos = FaultInjector(send_message, fail_times=5, clock=clock)

        for _ in range(5):
            with pytest.raises(ApiConnectionError, match="kablooey!"):
                await breaker.execute(chaos)
            clock.advance(0.1)
        assert breaker.state == CircuitState.OPEN

        with pytest.raises(CircuitBreakerOpenError):
            await breaker.execute(chaos)
        assert chaos.calls == 5

        clock.advance(5.0)
        assert await breaker.execute(chaos) == {"sid": "SM123"}
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0
        assert events == ["break", "half_open", "reset"]

    @pytest.mark.asyncio
    async def test_composed_policy_rides_out_the_outage(self, clock, sleep):
        retries = []
        breaker = CircuitBreaker(5, 5.0, clock=clock)
        executor = RetryExecutor(
            RetryPolicy(forever=True, fixed_delay=0.25),
            on_retry=lambda error, delay, attempt: retries.append(type(error)),
            sleep=sleep,
            clock=clock,
        )
        chaos = FaultInjector(send_message, fail_times=5, clock=clock)

        assert await PolicyWrap(executor, breaker).execute(chaos) == {"sid": "SM123"}

        assert len(retries) <= math.ceil(5000 / 250) + 5
        assert retries[:5] == [ApiConnectionError] * 5
        assert set(retries[5:]) == {CircuitBreakerOpenError}
        assert chaos.calls == 6
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_composed_policy_with_time_window(self, clock, sleep):
        breaker = CircuitBreaker(5, 5.0, clock=clock)
        executor = RetryExecutor(BREAKER_RETRY_POLICY, sleep=sleep, clock=clock)
        chaos = FaultInjector(send_message, fail_for=10.0, clock=clock)

        assert await PolicyWrap(executor, breaker).execute(chaos) == {"sid": "SM123"}
        assert clock.now >= 10.0
        assert breaker.state == CircuitState.CLOSED
        # One failed probe per cooldown while the window is open
        assert chaos.failures <= 5 + math.ceil(10.0 / 5.0)


class TestCancellation:
    """Cancelling a composed call while it waits between attempts."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("threshold", [1, 5])
    async def test_cancel_during_backoff_leaves_breaker_untouched(self, clock, threshold):
        breaker = CircuitBreaker(threshold, 5.0, clock=clock)
        executor = RetryExecutor(RetryPolicy(forever=True, fixed_delay=60.0))
        chaos = FaultInjector(send_message, fail_times=100, clock=clock)

        task = asyncio.create_task(PolicyWrap(executor, breaker).execute(chaos))
        await asyncio.sleep(0.01)
        assert chaos.calls == 1

        state = breaker.state
        failure_count = breaker.failure_count
        stats = breaker.get_stats()

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0.01)

        assert breaker.state == state
        assert breaker.failure_count == failure_count
        assert breaker.get_stats() == stats
        assert chaos.calls == 1

"""
Policy composition.

Every policy exposes the same capability, ``await policy.execute(operation)``.
PolicyWrap chains two of them so the outer one sees the inner one as a plain
operation, and the wrap itself is again a policy.
"""

import time
from collections.abc import Awaitable, Callable
from typing import Protocol, TypeVar, runtime_checkable

from bulwark.core.circuit_breaker import CircuitBreaker
from bulwark.core.classifier import FaultClassifier
from bulwark.core.executor import RetryExecutor
from bulwark.core.hooks import OnBreak, OnHalfOpen, OnReset, OnRetry
from bulwark.core.policy import BREAKER_RETRY_POLICY, RetryPolicy

T = TypeVar("T")


@runtime_checkable
class Policy(Protocol):
    """Anything that can run an operation with added resilience."""

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T: ...


class PolicyWrap:
    """
    Outer policy around an inner one.

    With a RetryExecutor outside and a CircuitBreaker inside, every attempt goes
    through the breaker; breaker rejections and transient failures both come back
    to the executor, which waits and tries the breaker again.

    Examples:
        >>> policy = PolicyWrap(RetryExecutor(BREAKER_RETRY_POLICY), CircuitBreaker(5, 5.0))
        >>> message = await policy.execute(send_message)
    """

    def __init__(self, outer: Policy, inner: Policy):
        self.outer = outer
        self.inner = inner

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        return await self.outer.execute(lambda: self.inner.execute(operation))

    def __repr__(self) -> str:
        return f"PolicyWrap(outer={self.outer!r}, inner={self.inner!r})"


def wrap(*policies: Policy) -> Policy:
    """
    Compose policies, outermost first.

    ``wrap(a, b, c)`` runs an operation as ``a(b(c(operation)))``.
    """
    if not policies:
        raise ValueError("wrap() needs at least one policy")
    composed = policies[-1]
    for outer in reversed(policies[:-1]):
        composed = PolicyWrap(outer, composed)
    return composed


def resilient_policy(
    *,
    retry_policy: RetryPolicy = BREAKER_RETRY_POLICY,
    exceptions_allowed_before_breaking: int = 5,
    duration_of_break: float = 5.0,
    name: str = "default",
    classifier: FaultClassifier | None = None,
    on_retry: OnRetry | None = None,
    on_break: OnBreak | None = None,
    on_reset: OnReset | None = None,
    on_half_open: OnHalfOpen | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> PolicyWrap:
    """
    Build a retry executor wrapped around a fresh circuit breaker.

    The breaker counts failures with the retry policy's classifier unless
    ``classifier`` is given.
    """
    breaker = CircuitBreaker(
        exceptions_allowed_before_breaking,
        duration_of_break,
        name=name,
        classifier=classifier or retry_policy.classifier,
        on_break=on_break,
        on_reset=on_reset,
        on_half_open=on_half_open,
        clock=clock,
    )
    return PolicyWrap(RetryExecutor(retry_policy, on_retry=on_retry, clock=clock), breaker)

"""
Testing utilities for Bulwark policies.

FaultInjector stands in for a real remote operation: for a configured window it
fails with a connection-style error, then passes calls through unchanged. It
drives a breaker through CLOSED -> OPEN -> HALF_OPEN -> CLOSED without any
network dependency.

Usage:
    from bulwark import FaultInjector, resilient_policy

    async def send():
        return {"sid": "SM123"}

    chaos = FaultInjector(send, fail_for=10.0)
    result = await resilient_policy().execute(chaos)
"""

import time
from collections.abc import Awaitable, Callable
from typing import Any

from bulwark.exceptions import ApiConnectionError, ConfigurationError
from bulwark.utils.logging import get_logger

logger = get_logger("bulwark.testing")


class FaultInjector:
    """
    Operation wrapper that fails during a window, then passes through.

    The window is either a duration measured from construction (``fail_for``),
    a number of leading calls (``fail_times``), or both (fails while either applies).
    """

    def __init__(
        self,
        operation: Callable[[], Awaitable[Any]],
        fail_for: float | None = None,
        fail_times: int | None = None,
        *,
        message: str = "kablooey!",
        clock: Callable[[], float] = time.monotonic,
    ):
        if fail_for is None and fail_times is None:
            raise ConfigurationError("FaultInjector needs fail_for or fail_times")
        if fail_for is not None and fail_for < 0:
            raise ConfigurationError("fail_for must be >= 0")
        if fail_times is not None and fail_times < 0:
            raise ConfigurationError("fail_times must be >= 0")

        self.operation = operation
        self.fail_times = fail_times
        self.message = message
        self._clock = clock
        self._ok_after = clock() + fail_for if fail_for is not None else None
        self.calls = 0
        self.failures = 0

    @property
    def failing(self) -> bool:
        """Whether the next call would fail."""
        if self.fail_times is not None and self.calls < self.fail_times:
            return True
        return self._ok_after is not None and self._clock() < self._ok_after

    async def __call__(self) -> Any:
        failing = self.failing
        self.calls += 1
        logger.debug(f"Making request #{self.calls}")
        if failing:
            self.failures += 1
            raise ApiConnectionError(self.message)
        return await self.operation()

"""
Retry executor for running operations with backoff.
"""

import asyncio
import random as _random
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

from bulwark.core.backoff import RandomSource
from bulwark.core.hooks import OnRetry, noop
from bulwark.core.policy import DEFAULT_RETRY_POLICY, RetryPolicy
from bulwark.utils.logging import get_logger

logger = get_logger("bulwark.executor")

T = TypeVar("T")


class RetryExecutor:
    """
    Runs an operation repeatedly according to a RetryPolicy.

    Each execute() call builds its own backoff cursor, so one executor can serve
    many concurrent callers. The only suspension point is the wait between
    attempts; cancelling the caller during that wait ends the call.

    Examples:
        >>> executor = RetryExecutor(DEFAULT_RETRY_POLICY, on_retry=log_on_retry)
        >>> message = await executor.execute(lambda: client.send(message))

        >>> # Retry through a breaker
        >>> executor = RetryExecutor(BREAKER_RETRY_POLICY)
        >>> await executor.execute(lambda: breaker.execute(send))
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        on_retry: OnRetry | None = None,
        random: RandomSource = _random.random,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize RetryExecutor.

        Args:
            policy: Retry policy (defaults to DEFAULT_RETRY_POLICY)
            on_retry: Called with (error, delay, attempt) before each wait
            random: Uniform [0, 1) source for jittered delays
            sleep: Coroutine function used to wait between attempts
            clock: Monotonic time source, used for max_duration
        """
        self.policy = policy or DEFAULT_RETRY_POLICY
        self.on_retry = on_retry or noop
        self._random = random
        self._sleep = sleep
        self._clock = clock

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Execute ``operation`` with retry logic.

        Args:
            operation: Zero-argument coroutine function

        Returns:
            Result of the first successful attempt

        Raises:
            Exception: The permanent failure, or the last failure once the
                backoff sequence or max_duration is exhausted
        """
        policy = self.policy
        delays = iter(policy.delays(self._random))
        started = self._clock()
        attempt = 0

        while True:
            try:
                result = await operation()
            except Exception as e:
                if not policy.should_retry(e):
                    logger.debug(f"Not retrying {type(e).__name__}: {e}")
                    raise

                delay = next(delays, None)
                if delay is None:
                    logger.error(f"Giving up after {attempt + 1} attempts: {e}")
                    raise

                if policy.max_duration is not None and self._clock() - started + delay > policy.max_duration:
                    logger.error(
                        f"Giving up after {attempt + 1} attempts, retry budget of {policy.max_duration}s spent: {e}"
                    )
                    raise

                attempt += 1
                logger.warning(f"Attempt {attempt} failed: {e}. Retrying in {delay:.2f}s...")
                self._notify(e, delay, attempt)
            else:
                if attempt > 0:
                    logger.info(f"Succeeded after {attempt + 1} attempts")
                return result

            await self._sleep(delay)

    def _notify(self, error: Exception, delay: float, attempt: int) -> None:
        try:
            self.on_retry(error, delay, attempt)
        except Exception:
            logger.warning(f"on_retry hook {self.on_retry!r} raised", exc_info=True)

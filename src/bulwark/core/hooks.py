"""
Notification hooks fired by the policies.

Hooks are plain callables invoked synchronously at retry and breaker transition
points. Every hook is optional; a missing hook is replaced by a no-op, so hooks
can never change control flow. The ``log_*`` functions reproduce the classic
console messages through the bulwark logger.
"""

from collections.abc import Callable

from bulwark.utils.logging import get_logger

logger = get_logger("bulwark.hooks")

OnRetry = Callable[[BaseException, float, int], None]
OnBreak = Callable[[BaseException, float], None]
OnReset = Callable[[], None]
OnHalfOpen = Callable[[], None]


def noop(*args, **kwargs) -> None:
    """Default hook."""


def log_on_retry(error: BaseException, delay: float, attempt: int) -> None:
    logger.warning(f'Action failed with error of "{error}". Waiting {delay * 1000:.0f}ms to retry (#{attempt})')


def log_on_break(error: BaseException, duration: float) -> None:
    logger.warning(f"Hold up, too many exceptions are being thrown. Not calling the service for {duration}s")


def log_on_reset() -> None:
    logger.info("Success!, circuit breaker reset.")


def log_on_half_open() -> None:
    logger.info("Circuit is half-opened. Going to test if we can call...")

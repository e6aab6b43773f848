"""
Circuit breaker for fail-fast behavior.

Stops calling a failing dependency for a cooldown period so it gets time to
recover and callers keep their latency budget.

Based on Martin Fowler's Circuit Breaker pattern:
https://martinfowler.com/bliki/CircuitBreaker.html
"""

import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TypeVar

from bulwark.core.classifier import DEFAULT_CLASSIFIER, FailureKind, FaultClassifier
from bulwark.core.hooks import OnBreak, OnHalfOpen, OnReset, noop
from bulwark.exceptions import CircuitBreakerOpenError, ConfigurationError
from bulwark.utils.logging import get_logger

logger = get_logger("bulwark.circuit_breaker")

T = TypeVar("T")


class CircuitState(StrEnum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation, calls allowed
    OPEN = "open"  # Failure threshold reached, calls rejected
    HALF_OPEN = "half_open"  # One probe call testing recovery


@dataclass(frozen=True)
class _Admission:
    """Ticket handed to an admitted call."""

    epoch: int
    is_probe: bool


class CircuitBreaker:
    """
    Circuit breaker guarding one logical dependency.

    One instance is shared by every caller of that dependency. Transitions are
    applied under a lock that is never held while the operation runs, so the
    breaker can be shared by asyncio tasks and by threads running their own
    event loops.

    States:
    - CLOSED: Calls pass through, transient failures are counted
    - OPEN: Calls fail fast with CircuitBreakerOpenError
    - HALF_OPEN: A single probe call is let through, everyone else is rejected

    Examples:
        >>> breaker = CircuitBreaker(exceptions_allowed_before_breaking=5, duration_of_break=5.0)
        >>> result = await breaker.execute(lambda: client.send(message))
    """

    def __init__(
        self,
        exceptions_allowed_before_breaking: int = 5,
        duration_of_break: float = 5.0,
        *,
        name: str = "default",
        classifier: FaultClassifier | None = None,
        on_break: OnBreak | None = None,
        on_reset: OnReset | None = None,
        on_half_open: OnHalfOpen | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize circuit breaker.

        Args:
            exceptions_allowed_before_breaking: Consecutive transient failures before opening
            duration_of_break: Seconds to stay open before admitting a probe
            name: Name used in logs and rejection errors
            classifier: Decides which failures count (default: FaultClassifier())
            on_break: Called with (error, duration_of_break) when the circuit opens
            on_reset: Called when the circuit closes again
            on_half_open: Called when the cooldown ends and a probe is admitted
            clock: Monotonic time source in seconds
        """
        if exceptions_allowed_before_breaking < 1:
            raise ConfigurationError("exceptions_allowed_before_breaking must be >= 1")
        if duration_of_break <= 0:
            raise ConfigurationError("duration_of_break must be > 0")

        self.name = name
        self.exceptions_allowed_before_breaking = exceptions_allowed_before_breaking
        self.duration_of_break = duration_of_break
        self.classifier = classifier or DEFAULT_CLASSIFIER
        self.on_break = on_break or noop
        self.on_reset = on_reset or noop
        self.on_half_open = on_half_open or noop
        self._clock = clock

        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: float | None = None
        self._probe_in_flight = False
        self._rejected_count = 0
        # Bumped on every transition; outcomes from an older epoch are ignored
        self._epoch = 0

    @property
    def state(self) -> CircuitState:
        """Current state. OPEN only turns HALF_OPEN when a call is attempted."""
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def opened_at(self) -> float | None:
        return self._opened_at

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``operation`` through the breaker.

        Args:
            operation: Zero-argument coroutine function

        Returns:
            Result of the operation

        Raises:
            CircuitBreakerOpenError: If the circuit is open, or half-open with a probe in flight
            Exception: Any exception raised by the operation
        """
        admission = self._admit()
        try:
            result = await operation()
        except Exception as e:
            self._fire(self._record_failure(admission, e))
            raise
        except BaseException:
            # Cancelled: nothing is recorded, a probe only gives up its slot
            self._release_probe(admission)
            raise
        self._fire(self._record_success(admission))
        return result

    def reset(self) -> None:
        """Manually close the circuit and clear the failure count."""
        with self._lock:
            was_closed = self._state == CircuitState.CLOSED
            self._close()
        logger.info(f"Circuit breaker '{self.name}' manually reset")
        if not was_closed:
            self._fire([(self.on_reset, ())])

    def get_stats(self) -> dict:
        """
        Get circuit breaker statistics.

        Returns:
            Dictionary with current state and counters
        """
        with self._lock:
            return {
                "name": self.name,
                "state": self._state.value,
                "failure_count": self._failure_count,
                "exceptions_allowed_before_breaking": self.exceptions_allowed_before_breaking,
                "duration_of_break": self.duration_of_break,
                "rejected_count": self._rejected_count,
                "probe_in_flight": self._probe_in_flight,
                "time_until_half_open": (
                    self._retry_after(self._clock()) if self._state == CircuitState.OPEN else None
                ),
            }

    # --- Transitions (called under lock) ------------------------------------

    def _admit(self) -> _Admission:
        events: list = []
        rejection: CircuitBreakerOpenError | None = None
        admission: _Admission | None = None

        with self._lock:
            now = self._clock()

            if self._state == CircuitState.OPEN:
                if now - self._opened_at >= self.duration_of_break:
                    self._half_open()
                    events.append((self.on_half_open, ()))
                else:
                    rejection = CircuitBreakerOpenError(self.name, self._retry_after(now))

            if rejection is None:
                if self._state == CircuitState.HALF_OPEN:
                    if self._probe_in_flight:
                        rejection = CircuitBreakerOpenError(
                            self.name,
                            0.0,
                            message=f"Circuit '{self.name}' is half-open and a probe call is already in flight",
                        )
                    else:
                        self._probe_in_flight = True
                        admission = _Admission(self._epoch, is_probe=True)
                else:
                    admission = _Admission(self._epoch, is_probe=False)

            if rejection is not None:
                self._rejected_count += 1

        self._fire(events)
        if rejection is not None:
            raise rejection
        return admission

    def _record_success(self, admission: _Admission) -> list:
        with self._lock:
            # Any success observed while closed breaks the consecutive run
            if self._state == CircuitState.CLOSED:
                self._failure_count = 0
                return []

            if admission.epoch != self._epoch:
                return []

            if self._state == CircuitState.HALF_OPEN and admission.is_probe:
                self._close()
                logger.info(f"Circuit breaker '{self.name}' closed after successful probe")
                return [(self.on_reset, ())]

        return []

    def _record_failure(self, admission: _Admission, error: Exception) -> list:
        with self._lock:
            if admission.epoch != self._epoch:
                return []

            if self.classifier.classify(error) != FailureKind.TRANSIENT:
                if admission.is_probe:
                    self._probe_in_flight = False
                return []

            if self._state == CircuitState.CLOSED:
                self._failure_count += 1
                logger.debug(
                    f"Circuit breaker '{self.name}' counted failure "
                    f"({self._failure_count}/{self.exceptions_allowed_before_breaking}): {error}"
                )
                if self._failure_count >= self.exceptions_allowed_before_breaking:
                    self._open()
                    logger.warning(
                        f"Circuit breaker '{self.name}' opened after {self._failure_count} consecutive failures, "
                        f"blocking calls for {self.duration_of_break}s"
                    )
                    return [(self.on_break, (error, self.duration_of_break))]

            elif self._state == CircuitState.HALF_OPEN and admission.is_probe:
                self._open()
                logger.warning(f"Circuit breaker '{self.name}' re-opened after failed probe: {error}")
                return [(self.on_break, (error, self.duration_of_break))]

        return []

    def _release_probe(self, admission: _Admission) -> None:
        if not admission.is_probe:
            return
        with self._lock:
            if admission.epoch == self._epoch:
                self._probe_in_flight = False

    def _open(self) -> None:
        """Transition to OPEN state."""
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
        self._probe_in_flight = False
        self._epoch += 1

    def _half_open(self) -> None:
        """Transition to HALF_OPEN state."""
        self._state = CircuitState.HALF_OPEN
        self._probe_in_flight = False
        self._epoch += 1
        logger.info(f"Circuit breaker '{self.name}' entering half-open state")

    def _close(self) -> None:
        """Transition to CLOSED state."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at = None
        self._probe_in_flight = False
        self._epoch += 1

    def _retry_after(self, now: float) -> float:
        if self._opened_at is None:
            return 0.0
        return max(0.0, self.duration_of_break - (now - self._opened_at))

    def _fire(self, events: list) -> None:
        """Run hooks outside the lock; a failing hook never changes the outcome."""
        for hook, args in events:
            try:
                hook(*args)
            except Exception:
                logger.warning(f"Circuit breaker '{self.name}' hook {hook!r} raised", exc_info=True)

"""
Backoff delay sequences for the retry executor.

Two shapes are provided:

- DecorrelatedJitter: a bounded sequence where each delay is randomized
  relative to the previous one, capped at ``max_delay``.
  See https://www.awsarchitectureblog.com/2015/03/backoff.html
- FixedDelay: the same delay forever, used when a circuit breaker bounds
  the cost of retrying indefinitely.

Both are immutable configurations; iterating one always starts a fresh cursor,
so a single instance can be shared by concurrent callers.
"""

import random as _random
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

from bulwark.exceptions import ConfigurationError

RandomSource = Callable[[], float]


@dataclass
class BackoffState:
    """Cursor over a decorrelated-jitter sequence."""

    seed_delay: float
    max_delay: float
    current_delay: float
    attempts_remaining: int

    def advance(self, sample: float) -> float:
        """
        Compute the next delay from a uniform sample in [0, 1).

        Can land anywhere between the seed and three times the previous delay,
        never above the cap.
        """
        self.current_delay = min(self.max_delay, max(self.seed_delay, self.current_delay * 3 * sample))
        self.attempts_remaining -= 1
        return self.current_delay


@dataclass(frozen=True)
class DecorrelatedJitter:
    """
    Bounded decorrelated-jitter backoff.

    Examples:
        >>> backoff = DecorrelatedJitter(max_attempts=3, seed_delay=0.05, max_delay=5.0)
        >>> len(list(backoff))
        3
    """

    max_attempts: int
    seed_delay: float
    max_delay: float
    random: RandomSource = field(default=_random.random, compare=False, repr=False)

    def __post_init__(self):
        """Validate configuration."""
        if self.max_attempts < 0:
            raise ConfigurationError("max_attempts must be >= 0")
        if self.seed_delay < 0:
            raise ConfigurationError("seed_delay must be >= 0")
        if self.max_delay < self.seed_delay:
            raise ConfigurationError("max_delay must be >= seed_delay")

    def __iter__(self) -> Iterator[float]:
        state = BackoffState(
            seed_delay=self.seed_delay,
            max_delay=self.max_delay,
            current_delay=self.seed_delay,
            attempts_remaining=self.max_attempts,
        )
        while state.attempts_remaining > 0:
            yield state.advance(self.random())


@dataclass(frozen=True)
class FixedDelay:
    """Unbounded backoff that always waits ``delay`` seconds."""

    delay: float

    def __post_init__(self):
        if self.delay < 0:
            raise ConfigurationError("delay must be >= 0")

    def __iter__(self) -> Iterator[float]:
        while True:
            yield self.delay

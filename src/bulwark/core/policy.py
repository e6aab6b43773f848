"""
Retry policy configuration.

A RetryPolicy is immutable and holds no per-call state, so one instance can be
shared by every executor and every concurrent caller.
"""

from dataclasses import dataclass, field

from bulwark.core.backoff import DecorrelatedJitter, FixedDelay, RandomSource
from bulwark.core.classifier import DEFAULT_CLASSIFIER, FailureKind, FaultClassifier
from bulwark.exceptions import ConfigurationError


@dataclass(frozen=True)
class RetryPolicy:
    """
    Configuration for retry behavior when an operation fails.

    Two modes:
    - bounded (default): up to ``max_attempts`` retries with decorrelated-jitter
      delays between ``seed_delay`` and ``max_delay``
    - forever: retry indefinitely every ``fixed_delay`` seconds, meant to be paired
      with a circuit breaker which bounds the damage

    Examples:
        >>> # Jittered backoff, 50 retries
        >>> policy = RetryPolicy(max_attempts=50, seed_delay=0.05, max_delay=5.0)

        >>> # Retry forever every 250ms, give up after a minute
        >>> policy = RetryPolicy(forever=True, fixed_delay=0.25, max_duration=60.0)

        >>> # Retry 429s too
        >>> policy = RetryPolicy(classifier=FaultClassifier().with_status_codes({408, 429, 500, 502, 503, 504}))
    """

    # Maximum number of retries (total executions = max_attempts + 1); ignored when forever
    max_attempts: int = 50

    # Lower bound and first value of the jittered delay (seconds)
    seed_delay: float = 0.05

    # Upper bound of the jittered delay (seconds)
    max_delay: float = 5.0

    # Retry indefinitely at fixed_delay instead of the bounded jitter sequence
    forever: bool = False

    # Delay between retries in forever mode (seconds)
    fixed_delay: float = 0.25

    # Treat a circuit breaker rejection as retryable
    retry_on_circuit_open: bool = True

    # Optional cap on total wall-clock time spent retrying (seconds)
    max_duration: float | None = None

    # Decides which failures are transient
    classifier: FaultClassifier = field(default=DEFAULT_CLASSIFIER)

    def __post_init__(self):
        """Validate configuration."""
        if self.max_attempts < 0:
            raise ConfigurationError("max_attempts must be >= 0")
        if self.seed_delay < 0:
            raise ConfigurationError("seed_delay must be >= 0")
        if self.max_delay < self.seed_delay:
            raise ConfigurationError("max_delay must be >= seed_delay")
        if self.fixed_delay < 0:
            raise ConfigurationError("fixed_delay must be >= 0")
        if self.max_duration is not None and self.max_duration <= 0:
            raise ConfigurationError("max_duration must be > 0")

    def delays(self, random: RandomSource | None = None) -> DecorrelatedJitter | FixedDelay:
        """
        Backoff sequence for one invocation.

        Args:
            random: Uniform [0, 1) source for the jitter (default: random.random)
        """
        if self.forever:
            return FixedDelay(self.fixed_delay)
        if random is None:
            return DecorrelatedJitter(self.max_attempts, self.seed_delay, self.max_delay)
        return DecorrelatedJitter(self.max_attempts, self.seed_delay, self.max_delay, random=random)

    def should_retry(self, error: BaseException) -> bool:
        """
        Determine if this failure is worth another attempt.

        Does not look at the attempt budget; the executor does that.
        """
        kind = self.classifier.classify(error)
        if kind == FailureKind.TRANSIENT:
            return True
        if kind == FailureKind.CIRCUIT_OPEN:
            return self.retry_on_circuit_open
        return False


# Pre-configured policies for common scenarios

DEFAULT_RETRY_POLICY = RetryPolicy(
    max_attempts=50,
    seed_delay=0.05,
    max_delay=5.0,
)

BREAKER_RETRY_POLICY = RetryPolicy(
    forever=True,
    fixed_delay=0.25,
)

NO_RETRY_POLICY = RetryPolicy(
    max_attempts=0,
)

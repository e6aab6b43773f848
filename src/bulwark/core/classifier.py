"""
Fault classification.

Decides whether a failure is worth retrying. The classifier is plain
configuration: retryable status codes and exception kinds can both be
overridden per policy.
"""

from dataclasses import dataclass, replace
from enum import StrEnum

import aiohttp

from bulwark.exceptions import ApiConnectionError, CircuitBreakerOpenError

DEFAULT_RETRYABLE_STATUS_CODES = frozenset(
    {
        408,  # Request Timeout
        500,  # Internal Server Error
        502,  # Bad Gateway
        503,  # Service Unavailable
        504,  # Gateway Timeout
    }
)

DEFAULT_TRANSIENT_EXCEPTIONS: tuple[type[BaseException], ...] = (
    ApiConnectionError,
    ConnectionError,
    TimeoutError,
    aiohttp.ClientConnectionError,
)


class FailureKind(StrEnum):
    """How a failure should be treated by the policies."""

    TRANSIENT = "transient"  # Worth retrying
    CIRCUIT_OPEN = "circuit_open"  # Rejected by a breaker, retryable by policy
    PERMANENT = "permanent"  # Surfaced immediately


def _status_of(error: BaseException) -> int | None:
    for attr in ("status", "status_code"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    return None


@dataclass(frozen=True)
class FaultClassifier:
    """
    Maps an exception to a FailureKind.

    Order of checks:
    1. CircuitBreakerOpenError -> CIRCUIT_OPEN
    2. connection-level exception kinds -> TRANSIENT
    3. ``status``/``status_code`` in the retryable set -> TRANSIENT
    4. everything else -> PERMANENT

    Examples:
        >>> classifier = FaultClassifier()
        >>> classifier(ApiError("bad gateway", status=502))
        <FailureKind.TRANSIENT: 'transient'>
        >>> classifier(ValueError("bad request"))
        <FailureKind.PERMANENT: 'permanent'>
    """

    retryable_status_codes: frozenset[int] = DEFAULT_RETRYABLE_STATUS_CODES
    transient_exceptions: tuple[type[BaseException], ...] = DEFAULT_TRANSIENT_EXCEPTIONS

    def classify(self, error: BaseException) -> FailureKind:
        if isinstance(error, CircuitBreakerOpenError):
            return FailureKind.CIRCUIT_OPEN
        if isinstance(error, self.transient_exceptions):
            return FailureKind.TRANSIENT
        status = _status_of(error)
        if status is not None and status in self.retryable_status_codes:
            return FailureKind.TRANSIENT
        return FailureKind.PERMANENT

    __call__ = classify

    def with_status_codes(self, codes) -> "FaultClassifier":
        """Return a copy that retries on ``codes`` instead."""
        return replace(self, retryable_status_codes=frozenset(int(c) for c in codes))


DEFAULT_CLASSIFIER = FaultClassifier()

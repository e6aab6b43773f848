"""
Resilience policy engine: backoff, fault classification, circuit breaker,
retry executor and policy composition.
"""

from bulwark.core.backoff import BackoffState, DecorrelatedJitter, FixedDelay
from bulwark.core.circuit_breaker import CircuitBreaker, CircuitState
from bulwark.core.classifier import (
    DEFAULT_CLASSIFIER,
    DEFAULT_RETRYABLE_STATUS_CODES,
    FailureKind,
    FaultClassifier,
)
from bulwark.core.executor import RetryExecutor
from bulwark.core.hooks import log_on_break, log_on_half_open, log_on_reset, log_on_retry
from bulwark.core.policy import (
    BREAKER_RETRY_POLICY,
    DEFAULT_RETRY_POLICY,
    NO_RETRY_POLICY,
    RetryPolicy,
)
from bulwark.core.wrap import Policy, PolicyWrap, resilient_policy, wrap

__all__ = [
    # Backoff
    "BackoffState",
    "DecorrelatedJitter",
    "FixedDelay",
    # Classification
    "FailureKind",
    "FaultClassifier",
    "DEFAULT_CLASSIFIER",
    "DEFAULT_RETRYABLE_STATUS_CODES",
    # Circuit Breaker
    "CircuitBreaker",
    "CircuitState",
    # Retry
    "RetryPolicy",
    "RetryExecutor",
    "DEFAULT_RETRY_POLICY",
    "BREAKER_RETRY_POLICY",
    "NO_RETRY_POLICY",
    # Composition
    "Policy",
    "PolicyWrap",
    "wrap",
    "resilient_policy",
    # Hooks
    "log_on_retry",
    "log_on_break",
    "log_on_reset",
    "log_on_half_open",
]

"""
Bulwark - composable retry and circuit breaker policies for asyncio.
"""

__version__ = "0.1.0"

# Config
from bulwark.config import load_config, policy_from_config

# Policy engine
from bulwark.core import (
    BREAKER_RETRY_POLICY,
    DEFAULT_RETRY_POLICY,
    NO_RETRY_POLICY,
    CircuitBreaker,
    CircuitState,
    DecorrelatedJitter,
    FailureKind,
    FaultClassifier,
    FixedDelay,
    Policy,
    PolicyWrap,
    RetryExecutor,
    RetryPolicy,
    resilient_policy,
    wrap,
)

# Exceptions
from bulwark.exceptions import (
    ApiConnectionError,
    ApiError,
    BulwarkError,
    CircuitBreakerOpenError,
    ConfigurationError,
    OperationError,
)

# Testing utilities
from bulwark.testing import FaultInjector

# Logging utilities
from bulwark.utils.logging import get_logger, setup_logging

__all__ = [
    # Backoff
    "DecorrelatedJitter",
    "FixedDelay",
    # Policies
    "FailureKind",
    "FaultClassifier",
    "CircuitBreaker",
    "CircuitState",
    "RetryPolicy",
    "RetryExecutor",
    "DEFAULT_RETRY_POLICY",
    "BREAKER_RETRY_POLICY",
    "NO_RETRY_POLICY",
    "Policy",
    "PolicyWrap",
    "wrap",
    "resilient_policy",
    # Config
    "load_config",
    "policy_from_config",
    # Logging
    "setup_logging",
    "get_logger",
    # Testing
    "FaultInjector",
    # Exceptions
    "BulwarkError",
    "ConfigurationError",
    "OperationError",
    "ApiConnectionError",
    "ApiError",
    "CircuitBreakerOpenError",
]

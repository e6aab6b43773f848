"""
Bulwark exception hierarchy.

All library exceptions inherit from BulwarkError, so callers can catch any
bulwark failure with one base class and still handle specific cases.

Hierarchy::

    BulwarkError
    ├── ConfigurationError        - invalid policy settings or config files
    ├── OperationError            - failure raised by a wrapped operation
    │   ├── ApiConnectionError    - remote host unreachable or timed out
    │   └── ApiError              - remote answered with an error status
    └── CircuitBreakerOpenError   - breaker rejected the call without invoking it
"""

from __future__ import annotations


class BulwarkError(Exception):
    """Base exception for all Bulwark errors."""

    def __init__(self, message: str, *, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# --- Configuration -----------------------------------------------------------


class ConfigurationError(BulwarkError):
    """Raised when policy settings or configuration files are invalid."""


# --- Operations --------------------------------------------------------------


class OperationError(BulwarkError):
    """Raised by a wrapped operation.

    ``status`` carries an HTTP-like status code when the remote side answered.
    """

    def __init__(self, message: str, *, status: int | None = None, details: dict | None = None) -> None:
        super().__init__(message, details=details)
        self.status = status


class ApiConnectionError(OperationError):
    """Raised when the remote host cannot be reached or times out before responding."""


class ApiError(OperationError):
    """Raised when the remote host answered with an error status."""

    def __init__(self, message: str, status: int, *, details: dict | None = None) -> None:
        super().__init__(message, status=status, details={"status": status, **(details or {})})


# --- Circuit breaker ---------------------------------------------------------


class CircuitBreakerOpenError(BulwarkError):
    """Raised when the circuit breaker is open and rejecting calls."""

    def __init__(self, circuit_name: str, retry_after: float = 0.0, message: str | None = None) -> None:
        message = message or (
            f"Circuit '{circuit_name}' is open; not calling the service for another {retry_after:.2f}s"
        )
        super().__init__(message, details={"circuit": circuit_name, "retry_after": retry_after})
        self.circuit_name = circuit_name
        self.retry_after = retry_after

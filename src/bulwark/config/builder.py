"""
Build policies from configuration.

Reads the ``resilience`` section of a Config::

    resilience:
      retry:
        mode: forever            # or bounded
        fixed_delay: 0.25
        retryable_status_codes: [408, 500, 502, 503, 504]
      circuit_breaker:
        name: messaging
        exceptions_allowed_before_breaking: 5
        duration_of_break: 5.0

Missing keys fall back to the RetryPolicy / CircuitBreaker defaults.
"""

import time
from collections.abc import Callable
from typing import Any

from bulwark.config.loader import Config
from bulwark.core.circuit_breaker import CircuitBreaker
from bulwark.core.classifier import DEFAULT_CLASSIFIER, FaultClassifier
from bulwark.core.executor import RetryExecutor
from bulwark.core.hooks import OnBreak, OnHalfOpen, OnReset, OnRetry
from bulwark.core.policy import RetryPolicy
from bulwark.core.wrap import PolicyWrap
from bulwark.exceptions import ConfigurationError

RETRY_MODES = ("bounded", "forever")


def _section(config: Config | dict[str, Any], name: str) -> dict[str, Any]:
    if isinstance(config, dict):
        config = Config(config)
    section = config.get(f"resilience.{name}", {})
    if not isinstance(section, dict):
        raise ConfigurationError(f"Configuration 'resilience.{name}' must be a mapping")
    return section


def _coerce(section: dict[str, Any], key: str, cast: Callable[[Any], Any], prefix: str) -> Any:
    try:
        return cast(section[key])
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid value for '{prefix}.{key}': {section[key]!r}") from e


def _bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "yes", "1", "on"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "no", "0", "off"):
        return False
    raise ValueError(value)


def _optional_float(value: Any) -> float | None:
    if value is None or (isinstance(value, str) and value.strip().lower() in ("", "null", "none")):
        return None
    return float(value)


def classifier_from_config(config: Config | dict[str, Any]) -> FaultClassifier:
    """Fault classifier with the configured retryable status codes."""
    section = _section(config, "retry")
    if "retryable_status_codes" not in section:
        return DEFAULT_CLASSIFIER
    codes = section["retryable_status_codes"] or []
    if not isinstance(codes, list | tuple | set):
        raise ConfigurationError("'resilience.retry.retryable_status_codes' must be a list")
    try:
        return DEFAULT_CLASSIFIER.with_status_codes(codes)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid retryable status code in {codes!r}") from e


def retry_policy_from_config(config: Config | dict[str, Any]) -> RetryPolicy:
    """
    Build a RetryPolicy from ``resilience.retry``.

    Raises:
        ConfigurationError: On unknown mode or invalid values
    """
    section = _section(config, "retry")
    prefix = "resilience.retry"
    kwargs: dict[str, Any] = {"classifier": classifier_from_config(config)}

    mode = str(section.get("mode", "bounded")).lower()
    if mode not in RETRY_MODES:
        raise ConfigurationError(f"Unknown retry mode '{mode}', expected one of {', '.join(RETRY_MODES)}")
    kwargs["forever"] = mode == "forever"

    casts: dict[str, Callable[[Any], Any]] = {
        "max_attempts": int,
        "seed_delay": float,
        "max_delay": float,
        "fixed_delay": float,
        "retry_on_circuit_open": _bool,
        "max_duration": _optional_float,
    }
    for key, cast in casts.items():
        if key in section:
            kwargs[key] = _coerce(section, key, cast, prefix)

    return RetryPolicy(**kwargs)


def circuit_breaker_from_config(
    config: Config | dict[str, Any],
    *,
    on_break: OnBreak | None = None,
    on_reset: OnReset | None = None,
    on_half_open: OnHalfOpen | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> CircuitBreaker:
    """Build a CircuitBreaker from ``resilience.circuit_breaker``."""
    section = _section(config, "circuit_breaker")
    prefix = "resilience.circuit_breaker"

    kwargs: dict[str, Any] = {}
    if "exceptions_allowed_before_breaking" in section:
        kwargs["exceptions_allowed_before_breaking"] = _coerce(
            section, "exceptions_allowed_before_breaking", int, prefix
        )
    if "duration_of_break" in section:
        kwargs["duration_of_break"] = _coerce(section, "duration_of_break", float, prefix)

    return CircuitBreaker(
        **kwargs,
        name=str(section.get("name", "default")),
        classifier=classifier_from_config(config),
        on_break=on_break,
        on_reset=on_reset,
        on_half_open=on_half_open,
        clock=clock,
    )


def policy_from_config(
    config: Config | dict[str, Any],
    *,
    on_retry: OnRetry | None = None,
    on_break: OnBreak | None = None,
    on_reset: OnReset | None = None,
    on_half_open: OnHalfOpen | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> PolicyWrap:
    """Retry executor around a circuit breaker, both read from config."""
    breaker = circuit_breaker_from_config(
        config, on_break=on_break, on_reset=on_reset, on_half_open=on_half_open, clock=clock
    )
    executor = RetryExecutor(retry_policy_from_config(config), on_retry=on_retry, clock=clock)
    return PolicyWrap(executor, breaker)

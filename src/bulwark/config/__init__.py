"""
Configuration management.

YAML loading with environment overlays, and policy construction from config.
"""

from bulwark.config.builder import (
    circuit_breaker_from_config,
    classifier_from_config,
    policy_from_config,
    retry_policy_from_config,
)
from bulwark.config.loader import Config, load_config, resolve_config

__all__ = [
    "load_config",
    "Config",
    "resolve_config",
    "classifier_from_config",
    "retry_policy_from_config",
    "circuit_breaker_from_config",
    "policy_from_config",
]

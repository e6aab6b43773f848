"""
Configuration file loading.

Loads bulwark.yaml, overlays bulwark.{env}.yaml and resolves ${VAR_NAME} and
{env} placeholders.
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml

from bulwark.exceptions import ConfigurationError

CONFIG_FILENAME = "bulwark.yaml"


class Config:
    """Bulwark configuration container with dict-like access."""

    def __init__(self, data: dict[str, Any]):
        self.data = data
        self.resilience = data.get("resilience") or {}

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation."""
        value = self.data
        for k in key.split("."):
            if not isinstance(value, dict):
                return default
            value = value.get(k)
            if value is None:
                return default
        return value

    def __getitem__(self, key: str) -> Any:
        """Dict-like access: config['key'] or config['nested.key']."""
        if "." in key:
            if key not in self:
                raise KeyError(f"Config key '{key}' not found")
            return self.get(key)
        if key in self.data:
            value = self.data[key]
            if isinstance(value, dict):
                return Config(value)
            return value
        raise KeyError(f"Config key '{key}' not found")

    def __contains__(self, key: str) -> bool:
        value = self.data
        for k in key.split("."):
            if not isinstance(value, dict) or k not in value:
                return False
            value = value[k]
        return True

    def validate(self) -> None:
        """Validate configuration structure."""
        errors = []

        resilience = self.data.get("resilience")
        if resilience is not None and not isinstance(resilience, dict):
            errors.append(f"Configuration 'resilience' must be a mapping, got {type(resilience).__name__}")
        elif resilience:
            for section in ("retry", "circuit_breaker"):
                value = resilience.get(section)
                if value is not None and not isinstance(value, dict):
                    errors.append(
                        f"Configuration 'resilience.{section}' must be a mapping, got {type(value).__name__}"
                    )

        if errors:
            raise ConfigurationError("\n".join(errors))


def load_config(path: Path | str | None = None, env: str | None = None) -> Config:
    """
    Load Bulwark configuration.

    Args:
        path: Config file, or directory holding bulwark.yaml (default: current directory)
        env: Environment name; bulwark.{env}.yaml is merged over the base file if present

    Returns:
        Validated Config instance
    """
    path = Path(path) if path is not None else Path.cwd()
    base_config_path = path / CONFIG_FILENAME if path.is_dir() else path

    if not base_config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {base_config_path}\n"
            f"  Suggestion: Create a {CONFIG_FILENAME} file in your project root"
        )
    if not base_config_path.is_file():
        raise FileNotFoundError(f"Configuration path is not a file: {base_config_path}")

    config_data = _read_yaml(base_config_path)

    if env:
        env_config_path = base_config_path.with_name(f"{base_config_path.stem}.{env}{base_config_path.suffix}")
        if env_config_path.exists():
            _merge_dict(config_data, _read_yaml(env_config_path))

    config = Config(resolve_config(config_data, env or "dev"))
    config.validate()
    return config


def _read_yaml(path: Path) -> dict[str, Any]:
    with open(path) as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            mark = getattr(e, "problem_mark", None)
            if mark is not None:
                raise ConfigurationError(
                    f"Error parsing {path.name} at line {mark.line + 1}, column {mark.column + 1}:\n"
                    f"  {e}\n"
                    f"  File: {path}\n"
                    f"  Suggestion: Check YAML syntax, ensure proper indentation and quotes"
                ) from e
            raise ConfigurationError(f"Error parsing {path.name}: {e}\n  File: {path}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration must be a mapping, got {type(data).__name__}\n  File: {path}")
    return data


def _merge_dict(base: dict, override: dict):
    """Recursively merge override into base."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _merge_dict(base[key], value)
        else:
            base[key] = value


def resolve_config(config_data: dict[str, Any], env: str = "dev") -> dict[str, Any]:
    """
    Substitute ${VAR_NAME} from the environment and the {env} placeholder.

    Unknown variables are left as written.
    """
    return _resolve_value(config_data, env)


def _resolve_value(value: Any, env: str) -> Any:
    if isinstance(value, dict):
        return {k: _resolve_value(v, env) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_value(item, env) for item in value]
    if isinstance(value, str):
        result = re.sub(r"\${([^}]+)}", lambda m: os.getenv(m.group(1), m.group(0)), value)
        return result.replace("{env}", env)
    return value

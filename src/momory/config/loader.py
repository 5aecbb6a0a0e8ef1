"""Configuration loading with hierarchy support."""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from momory.config.schemas import MomoryConfig

ENV_PREFIX = "MOMORY_"


class ConfigError(ValueError):
    """A configuration source is unreadable or holds invalid values."""


def get_default_config_path() -> Path:
    """Get the default user configuration path."""
    return Path.home() / ".momory" / "config.yaml"


def get_config_paths() -> list[Path]:
    """Get ordered list of configuration paths to check."""
    paths = []

    user_config = get_default_config_path()
    if user_config.exists():
        paths.append(user_config)

    project_config = Path.cwd() / ".momory.yaml"
    if project_config.exists():
        paths.append(project_config)

    return paths


def load_yaml_config(path: Path) -> dict[str, Any]:
    """Load a YAML configuration file.

    Raises:
        ConfigError: If the file is not valid YAML or not a mapping
    """
    try:
        with open(path, "r") as f:
            content = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(content, dict):
        raise ConfigError(f"Configuration in {path} must be a mapping")
    return content


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def get_env_overrides() -> dict[str, Any]:
    """Get configuration overrides from environment variables.

    Variables are prefixed with MOMORY_ and use double underscores for
    nested keys:
    - MOMORY_LOG_LEVEL=DEBUG -> {"log_level": "DEBUG"}
    - MOMORY_THRESHOLDS__PRUNE_FLOOR=0.2 -> {"thresholds": {"prune_floor": 0.2}}
    """
    overrides: dict[str, Any] = {}

    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        parts = key[len(ENV_PREFIX):].lower().split("__")

        current = overrides
        for part in parts[:-1]:
            current = current.setdefault(part, {})

        current[parts[-1]] = _parse_env_value(value)

    return overrides


def _parse_env_value(value: str) -> Any:
    """Parse an environment variable value to appropriate type."""
    if value.lower() in ("true", "yes"):
        return True
    if value.lower() in ("false", "no"):
        return False

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    return value


def load_config(
    config_path: Optional[Path] = None,
    include_env: bool = True,
) -> MomoryConfig:
    """Load configuration from all sources with proper hierarchy.

    Loading order (later overrides earlier):
    1. Default values (from schema)
    2. User config (~/.momory/config.yaml)
    3. Project config (.momory.yaml in cwd)
    4. Explicit config file
    5. Environment variables (MOMORY_*)

    Args:
        config_path: Optional explicit configuration file path
        include_env: Whether to include environment variable overrides

    Returns:
        Validated MomoryConfig instance

    Raises:
        FileNotFoundError: If an explicit config file does not exist
        ConfigError: If a source is malformed or a value fails validation
    """
    merged_config: dict[str, Any] = {}

    for path in get_config_paths():
        merged_config = deep_merge(merged_config, load_yaml_config(path))

    if config_path:
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        merged_config = deep_merge(merged_config, load_yaml_config(config_path))

    if include_env:
        merged_config = deep_merge(merged_config, get_env_overrides())

    try:
        return MomoryConfig(**merged_config)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ConfigError(f"Invalid configuration values: {fields}") from e


def create_default_config(path: Path) -> None:
    """Write the default configuration as YAML.

    Args:
        path: Path where to create the config file
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = MomoryConfig().model_dump(mode="json", exclude_none=True)

    yaml_content = "# Momory configuration\n\n"
    yaml_content += yaml.dump(config_dict, default_flow_style=False, sort_keys=False)

    with open(path, "w") as f:
        f.write(yaml_content)

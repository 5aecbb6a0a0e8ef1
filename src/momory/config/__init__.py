"""Configuration management for the memory engine."""

from momory.config.loader import (
    ConfigError,
    create_default_config,
    get_default_config_path,
    load_config,
)
from momory.config.schemas import (
    BudgetConfig,
    LLMConfig,
    MomoryConfig,
    RateConfig,
    StorageConfig,
    ThresholdConfig,
)

__all__ = [
    "MomoryConfig",
    "ThresholdConfig",
    "BudgetConfig",
    "RateConfig",
    "StorageConfig",
    "LLMConfig",
    "ConfigError",
    "load_config",
    "create_default_config",
    "get_default_config_path",
]

"""Configuration loading and rule filtering for ABL workspaces."""

from rules.config import (
    CONFIG_FILENAME,
    ConfigError,
    EffectiveConfig,
    OriginPath,
    RuleConfig,
    load_config,
    load_config_file,
)
from rules.filters import is_suppressed, path_matches_any_pattern

__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "EffectiveConfig",
    "OriginPath",
    "RuleConfig",
    "is_suppressed",
    "load_config",
    "load_config_file",
    "path_matches_any_pattern",
]

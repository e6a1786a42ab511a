"""Configuration for focusgroup."""

from focusgroup.config.exceptions import ApiKeyNotFoundError, ConfigError
from focusgroup.config.settings import (
    FocusGroupConfig,
    ModelSettings,
    PacingSettings,
    RetrySettings,
    ThrottleSettings,
    load_config,
)

__all__ = [
    "ApiKeyNotFoundError",
    "ConfigError",
    "FocusGroupConfig",
    "ModelSettings",
    "PacingSettings",
    "RetrySettings",
    "ThrottleSettings",
    "load_config",
]

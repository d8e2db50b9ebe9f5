"""Configuration management for jobwatch."""

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .loader import load_config, parse_config
from .models import (
    AdvancedConfig,
    AppConfig,
    DuplicateConfig,
    ExecutorConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    NotificationChannel,
    NotificationConfig,
    RetentionConfig,
    RetryConfig,
    SiteConfig,
    SiteType,
)

__all__ = [
    "load_config",
    "parse_config",
    "load_environment_config",
    "AppConfig",
    "SiteConfig",
    "RetryConfig",
    "DuplicateConfig",
    "ExecutorConfig",
    "RetentionConfig",
    "NotificationConfig",
    "LoggingConfig",
    "AdvancedConfig",
    "EnvironmentConfig",
    "SiteType",
    "LogLevel",
    "LogFormat",
    "NotificationChannel",
    "ConfigurationError",
]

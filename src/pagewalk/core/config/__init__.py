"""Configuration loading and validation."""

from .models import (
    AppConfig,
    ApiConfig,
    ThrottleConfig,
    CacheConfig,
    PaginationConfig,
    LoggingConfig,
)
from .loader import (
    ConfigError,
    DEFAULT_CONFIG_PATH,
    dump_default_config,
    load_app_config,
    validate_app_config_file,
)

__all__ = [
    # Config models
    "AppConfig",
    "ApiConfig",
    "ThrottleConfig",
    "CacheConfig",
    "PaginationConfig",
    "LoggingConfig",
    # Loaders
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "dump_default_config",
    "load_app_config",
    "validate_app_config_file",
]

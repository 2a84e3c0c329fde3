"""Configuration management for cleansweep.

This module provides configuration loading and validation for the sweeper
and its logging and metrics.
"""

from .config import (
    Config,
    ConfigError,
    LoggingConfig,
    MetricsConfig,
    configure_telemetry,
    load_config,
    load_config_from_env,
    load_config_from_file,
    validate_config,
)

__all__ = [
    "Config",
    "ConfigError",
    "LoggingConfig",
    "MetricsConfig",
    "configure_telemetry",
    "load_config",
    "load_config_from_env",
    "load_config_from_file",
    "validate_config",
]

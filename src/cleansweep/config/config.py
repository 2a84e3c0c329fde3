"""Core configuration management for cleansweep.

This module provides the main configuration classes and loading functionality
with environment variable support.
"""

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from cleansweep.core.sweeper import SweeperConfig
from cleansweep.utils.telemetry import setup_logging, start_metrics_server


class ConfigError(Exception):
    """Configuration-related errors."""

    pass


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "text"] = "json"


class MetricsConfig(BaseModel):
    """Metrics configuration."""

    enabled: bool = False
    port: int = 8000


class Config(BaseModel):
    """Main configuration class for cleansweep."""

    sweeper: SweeperConfig = Field(default_factory=SweeperConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)


_TRUE_VALUES = ("true", "1", "yes", "on")


def _env_number(name: str, kind: type) -> int | float | None:
    env_val = os.getenv(name)
    if not env_val:
        return None
    try:
        return kind(env_val)
    except ValueError as e:
        raise ConfigError(f"Invalid {name}: {env_val}") from e


def load_config_from_file(config_path: Path) -> Config:
    """Load configuration from YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        Loaded configuration

    Raises:
        ConfigError: If configuration is invalid or file cannot be read
    """
    try:
        with open(config_path) as f:
            config_data = yaml.safe_load(f)

        if config_data is None:
            config_data = {}

        return Config(**config_data)

    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file not found: {config_path}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in configuration file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e


def load_config_from_env() -> Config:
    """Load configuration from environment variables.

    Environment variables are mapped as follows:
    - CLEANSWEEP_BACKGROUND_SWEEPING: Start the background loop (true/false)
    - CLEANSWEEP_CORE_WORKERS: Workers kept alive in the default pool
    - CLEANSWEEP_MAX_WORKERS: Maximum workers in the default pool
    - CLEANSWEEP_KEEP_ALIVE_SECONDS: Idle time before surplus workers retire
    - CLEANSWEEP_WAIT_POLL_INTERVAL: Cancellation check interval of the loop
    - CLEANSWEEP_RESUME_ON_ERROR: Resume the loop after failures (true/false)
    - CLEANSWEEP_LOG_LEVEL: Logging level
    - CLEANSWEEP_LOG_FORMAT: Logging format (json/text)
    - CLEANSWEEP_METRICS_PORT: Metrics server port (enables metrics)

    Returns:
        Configuration loaded from environment variables
    """
    config_data: dict = {}

    sweeper_config: dict = {}
    if env_val := os.getenv("CLEANSWEEP_BACKGROUND_SWEEPING"):
        sweeper_config["background_sweeping"] = env_val.lower() in _TRUE_VALUES
    if env_val := os.getenv("CLEANSWEEP_RESUME_ON_ERROR"):
        sweeper_config["resume_on_error"] = env_val.lower() in _TRUE_VALUES
    for field_name, env_name, kind in (
        ("core_workers", "CLEANSWEEP_CORE_WORKERS", int),
        ("max_workers", "CLEANSWEEP_MAX_WORKERS", int),
        ("keep_alive_seconds", "CLEANSWEEP_KEEP_ALIVE_SECONDS", float),
        ("wait_poll_interval", "CLEANSWEEP_WAIT_POLL_INTERVAL", float),
    ):
        value = _env_number(env_name, kind)
        if value is not None:
            sweeper_config[field_name] = value
    if sweeper_config:
        config_data["sweeper"] = sweeper_config

    logging_config = {}
    if env_val := os.getenv("CLEANSWEEP_LOG_LEVEL"):
        logging_config["level"] = env_val.upper()
    if env_val := os.getenv("CLEANSWEEP_LOG_FORMAT"):
        logging_config["format"] = env_val.lower()
    if logging_config:
        config_data["logging"] = logging_config

    port = _env_number("CLEANSWEEP_METRICS_PORT", int)
    if port is not None:
        config_data["metrics"] = {"enabled": True, "port": port}

    try:
        return Config(**config_data)
    except ValidationError as e:
        raise ConfigError(f"Environment configuration validation failed: {e}") from e


def _merge(base: dict, override: dict) -> dict:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from file and environment variables.

    Configuration is loaded in the following order (later sources override earlier):
    1. Default values
    2. Configuration file (if provided)
    3. Environment variables

    Args:
        config_path: Optional path to configuration file

    Returns:
        Merged configuration
    """
    data = Config().model_dump()

    if config_path and config_path.exists():
        file_config = load_config_from_file(config_path)
        data = _merge(data, file_config.model_dump(exclude_unset=True))

    env_config = load_config_from_env()
    data = _merge(data, env_config.model_dump(exclude_unset=True))

    try:
        return Config(**data)
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e


def validate_config(config: Config) -> None:
    """Validate configuration for consistency and correctness.

    Args:
        config: Configuration to validate

    Raises:
        ConfigError: If configuration is invalid
    """
    if config.sweeper.core_workers > config.sweeper.max_workers:
        raise ConfigError("sweeper.core_workers must not exceed sweeper.max_workers")

    if config.sweeper.background_sweeping and config.sweeper.max_workers < 2:
        raise ConfigError(
            "background sweeping occupies a worker; sweeper.max_workers must be >= 2"
        )

    if config.metrics.port <= 0 or config.metrics.port > 65535:
        raise ConfigError("metrics.port must be between 1 and 65535")


def configure_telemetry(config: Config) -> None:
    """Apply logging and metrics settings from a configuration.

    Args:
        config: Validated configuration
    """
    setup_logging(config.logging.level, config.logging.format)
    if config.metrics.enabled:
        start_metrics_server(config.metrics.port)

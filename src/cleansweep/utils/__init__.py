# Shared utilities and helpers

from .errors import (
    DispatcherRejectedError,
    InvalidArgumentError,
    SweepCancelledError,
    SweeperError,
)
from .telemetry import get_logger, setup_logging, start_metrics_server

__all__ = [
    "DispatcherRejectedError",
    "InvalidArgumentError",
    "SweepCancelledError",
    "SweeperError",
    "get_logger",
    "setup_logging",
    "start_metrics_server",
]

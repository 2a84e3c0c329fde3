"""Telemetry utilities for logging and metrics.

This module provides centralized observability infrastructure including:
- Structured logging through structlog
- Prometheus metrics for registrations, drains and action execution
"""

import logging
from typing import Any

import structlog
from prometheus_client import Counter, Gauge, start_http_server
from structlog.processors import JSONRenderer

# Prometheus metrics
ENTRIES_REGISTERED = Counter(
    "cleansweep_entries_registered_total",
    "Total number of tracked entries registered",
    ["tier"],
)

ENTRIES_DRAINED = Counter(
    "cleansweep_entries_drained_total",
    "Total number of entries drained from the observation queue",
    ["path"],
)

ACTIONS_RUN = Counter(
    "cleansweep_actions_run_total",
    "Total number of cleanup actions executed",
    ["tier"],
)

ACTION_FAILURES = Counter(
    "cleansweep_action_failures_total",
    "Total number of cleanup actions that raised",
    ["tier"],
)

PENDING_ENTRIES = Gauge(
    "cleansweep_pending_entries",
    "Number of entries registered and not yet removed from the pending registry",
)


def setup_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """Initialize structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Output format, ``json`` or ``text``
    """
    logging.basicConfig(format="%(message)s", level=log_level.upper())

    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "text":
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str, **context: Any) -> Any:
    """Get a structured logger with optional context.

    Args:
        name: Logger name
        **context: Additional context to bind to logger

    Returns:
        Bound logger with context
    """
    logger = structlog.get_logger(name)
    if context:
        logger = logger.bind(**context)
    return logger


def record_registration(tier: str) -> None:
    """Record a new tracked entry."""
    ENTRIES_REGISTERED.labels(tier=tier).inc()
    PENDING_ENTRIES.inc()


def record_removal() -> None:
    """Record an entry leaving the pending registry."""
    PENDING_ENTRIES.dec()


def record_drain(path: str, count: int = 1) -> None:
    """Record entries drained from the observation queue.

    Args:
        path: Which sweep drained them (sweep, queueing, background, shutdown)
        count: Number of entries drained
    """
    if count:
        ENTRIES_DRAINED.labels(path=path).inc(count)


def record_action(tier: str, failed: bool = False) -> None:
    """Record execution of a cleanup action.

    Args:
        tier: Tier of the entry whose action ran
        failed: Whether the action raised
    """
    ACTIONS_RUN.labels(tier=tier).inc()
    if failed:
        ACTION_FAILURES.labels(tier=tier).inc()


def start_metrics_server(port: int = 8000) -> None:
    """Start Prometheus metrics HTTP server.

    Args:
        port: Port to serve metrics on
    """
    start_http_server(port)
    get_logger("cleansweep.telemetry").info("Metrics server started", port=port)

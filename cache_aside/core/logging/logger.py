#!/usr/bin/env python3
"""
Structured Logging Module using structlog

This module provides structured logging with:
- Correlation ID propagation for request tracing
- Stage numbering for the cache-aside protocol steps
- JSON formatting for log aggregation
- Cache key truncation so oversized keys don't flood log lines

Architectural Decision: structlog for production logging
- Context-aware logging with automatic field injection
- JSON output for log aggregation (ELK, Splunk, etc.)
- Async-safe through context variables
"""

import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone

import structlog
from structlog.types import EventDict, WrappedLogger

from cache_aside.core.config.constants import LOG_KEY_MAX_LENGTH
from cache_aside.core.config.settings import get_settings

# Context variable for the caller's correlation ID (task-local)
correlation_id_ctx: ContextVar[str | None] = ContextVar("correlation_id", default=None)

_KEY_FIELDS = ("cache_key", "lock_key", "pattern")


def add_correlation_id(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add correlation ID to log event from context variable.

    STAGE-L.1: Correlation ID injection
    """
    correlation_id = correlation_id_ctx.get()
    if correlation_id:
        event_dict["correlation_id"] = correlation_id
    return event_dict


def add_timestamp(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add ISO timestamp to log event.

    STAGE-L.2: Timestamp injection
    """
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    return event_dict


def truncate_keys(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Truncate long cache keys.

    STAGE-L.3: Key truncation
    """
    for field in _KEY_FIELDS:
        value = event_dict.get(field)
        if isinstance(value, str) and len(value) > LOG_KEY_MAX_LENGTH:
            event_dict[field] = value[:LOG_KEY_MAX_LENGTH] + "..."
    return event_dict


def add_log_level_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Upper-case the log level.

    STAGE-L.4: Log level injection
    """
    if "level" in event_dict:
        event_dict["level"] = event_dict["level"].upper()
    return event_dict


def setup_logging(log_level: str | None = None, log_format: str | None = None) -> None:
    """
    Setup structured logging with structlog.

    STAGE-L: Logging initialization

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format ('json' or 'console')
    """
    settings = get_settings()

    log_level = log_level or settings.logging.LOG_LEVEL
    log_format = log_format or settings.logging.LOG_FORMAT

    logging.basicConfig(
        format="%(message)s", stream=sys.stdout, level=getattr(logging, log_level.upper())
    )

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_correlation_id,
            add_timestamp,
            structlog.stdlib.add_log_level,
            add_log_level_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            truncate_keys,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("message", key="value", stage="2.1_INITIAL_READ")
    """
    return structlog.get_logger(name)


def set_correlation_id(correlation_id: str) -> None:
    """
    Set the correlation ID for the current task.

    Every log entry emitted afterwards in this context carries it.
    """
    correlation_id_ctx.set(correlation_id)


def get_correlation_id() -> str | None:
    """Get the current correlation ID from context."""
    return correlation_id_ctx.get()


def clear_correlation_id() -> None:
    """Clear the correlation ID from context."""
    correlation_id_ctx.set(None)


def log_stage(
    logger: structlog.stdlib.BoundLogger, stage: str, message: str, level: str = "info", **kwargs
) -> None:
    """
    Log a message with stage information.

    Args:
        logger: Logger instance
        stage: Stage identifier (e.g., Stage.INITIAL_READ)
        message: Log message
        level: Log level (debug, info, warning, error, critical)
        **kwargs: Additional fields to log

    Usage:
        log_stage(logger, Stage.INITIAL_READ, "Cache hit", cache_key="cache:user:42")
    """
    log_func = getattr(logger, level.lower())
    stage_value = stage.value if hasattr(stage, "value") else stage
    log_func(message, stage=stage_value, **kwargs)

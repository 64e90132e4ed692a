#!/usr/bin/env python3
"""
Structured Logging Module using structlog

This module provides structured logging for the cache with:
- Stage identifiers for every cache operation
- JSON formatting for log aggregation
- Redaction of emails and tokens that leak into cache keys
- Context processors for automatic field injection

Architectural Decision: structlog for production logging
- Context-aware logging with automatic field injection
- JSON output for log aggregation (ELK, Splunk, etc.)
"""

import logging
import re
import sys
from datetime import datetime, timezone

import structlog
from structlog.types import EventDict, WrappedLogger

from tiercache.core.config.settings import get_settings

_EMAIL_PATTERN = re.compile(r"\b[\w.-]+@[\w.-]+\.\w+\b")
_TOKEN_PATTERN = re.compile(r"\b(?:sk|pk|tok)-[a-zA-Z0-9]{8,}\b")


def add_timestamp(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add ISO timestamp to log event."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    return event_dict


def _redact(text: str) -> str:
    text = _EMAIL_PATTERN.sub("[EMAIL]", text)
    return _TOKEN_PATTERN.sub("[REDACTED]", text)


def redact_pii(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Redact PII from log messages and cache keys.

    Cache keys are chosen by callers and regularly embed user identifiers,
    so both the event text and the ``cache_key`` field are scrubbed.

    Patterns redacted:
    - Email addresses -> [EMAIL]
    - API tokens (sk-..., pk-..., tok-...) -> [REDACTED]
    """
    for field in ("event", "cache_key"):
        value = event_dict.get(field)
        if isinstance(value, str):
            event_dict[field] = _redact(value)
    return event_dict


def add_log_level_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add log level name to event dict."""
    if "level" in event_dict:
        event_dict["level"] = event_dict["level"].upper()
    return event_dict


def setup_logging(log_level: str | None = None, log_format: str | None = None) -> None:
    """
    Setup structured logging with structlog.

    Library code never calls this; the host application does, once, at
    startup. Without it structlog falls back to its default configuration.

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
            add_timestamp,
            structlog.stdlib.add_log_level,
            add_log_level_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            redact_pii,
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
        logger.info("message", key="value", stage="C.1_CACHE_HIT")
    """
    return structlog.get_logger(name)


def log_stage(
    logger: structlog.stdlib.BoundLogger, stage: str, message: str, level: str = "info", **kwargs
) -> None:
    """
    Log a message with stage information.

    Args:
        logger: Logger instance
        stage: Stage identifier (e.g., Stage.CACHE_HIT)
        message: Log message
        level: Log level (debug, info, warning, error, critical)
        **kwargs: Additional fields to log

    Usage:
        log_stage(logger, Stage.CACHE_HIT, "Cache hit", cache_key="user:42:profile")
    """
    log_func = getattr(logger, level.lower())
    log_func(message, stage=str(getattr(stage, "value", stage)), **kwargs)

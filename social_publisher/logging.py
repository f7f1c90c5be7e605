"""Centralized structlog configuration for social-publisher.

Token values, plaintext or encrypted, must never be passed to a logger.
"""

from __future__ import annotations

import logging
import sys

import structlog


def _normalize_log_level(level: str | None) -> int:
    normalized = level.strip().upper() if level else "INFO"
    return logging._nameToLevel.get(normalized, logging.INFO)


def configure_logging(level: str | None = "INFO", json: bool = True) -> None:
    """Configure structlog with JSON (or console) output to stderr.

    Stdout stays free for command output.
    """
    resolved_level = _normalize_log_level(level)
    logging.basicConfig(level=resolved_level, stream=sys.stderr)
    renderer = (
        structlog.processors.JSONRenderer()
        if json
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(resolved_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

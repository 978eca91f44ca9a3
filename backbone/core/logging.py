"""Structured logging setup shared by the API and the CLI."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Any

import structlog

LOG_FILE = Path("logs/backbone.log")


def _use_json(log_format: str | None) -> bool:
    # JSON_LOGS overrides the configured format
    flag = os.getenv("JSON_LOGS")
    if flag is not None:
        return flag.lower() == "true"
    return (log_format or "").lower() == "json"


def configure_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Route structlog and stdlib logging through one processor chain.

    Args:
        level: Log level name (defaults to LOG_LEVEL, then INFO)
        log_format: "json" or "text" (defaults to LOG_FORMAT); JSON_LOGS wins when set
    """
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_format = log_format or os.getenv("LOG_FORMAT", "text")

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if _use_json(log_format):
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if LOG_FILE.parent.is_dir():
        handlers.append(logging.FileHandler(LOG_FILE))

    logging.basicConfig(format="%(message)s", handlers=handlers, level=level, force=True)

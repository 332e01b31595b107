"""Logging configuration shared by the app and its adapters."""

from __future__ import annotations

import logging
import os
import sys
from typing import Literal

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Chatty third-party loggers kept at WARNING unless DEBUG is requested.
_NOISY_LOGGERS = ("websockets", "httpx", "httpcore")


def setup_logging(
    name: str | None = None,
    level: str | None = None,
    format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """
    Configure logging and return a logger.

    Args:
        name: Logger name (typically __name__). If None, returns root logger.
        level: Log level. Defaults to LOG_LEVEL env var or INFO.
        format: Log format string.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    log_level = getattr(logging, str(level).upper(), logging.INFO)

    logging.basicConfig(level=log_level, format=format, stream=sys.stdout)

    noisy_level = logging.DEBUG if log_level <= logging.DEBUG else logging.WARNING
    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(noisy_level)

    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    return logger


def set_log_level(level: LogLevel | str) -> None:
    """Change the root log level at runtime."""
    log_level = getattr(logging, str(level).upper(), logging.INFO)
    logging.getLogger().setLevel(log_level)


def mask_secret(value: str | None, visible: int = 6) -> str:
    """Short, log-safe prefix of a credential."""
    if not value:
        return "NO KEY"
    return value[:visible] + "..."

"""
Logging Configuration Module
Provides shared logger construction and helpers for consistent log output
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

DEFAULT_FORMAT = "%(levelname)s %(name)s: %(message)s"
VERBOSE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_ROOT_LOGGER_NAME = "upstream_sync"


def setup_logging(level: str | int = "INFO", *, verbose: bool = False, stream=None) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        level: Log level name or number (ignored when ``verbose`` is set)
        verbose: Emit DEBUG output with timestamps
        stream: Output stream, defaults to stderr

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(_ROOT_LOGGER_NAME)
    resolved = logging.DEBUG if verbose else _coerce_level(level)

    for handler in list(logger.handlers):
        if getattr(handler, "_upstream_sync_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(VERBOSE_FORMAT if verbose else DEFAULT_FORMAT))
    handler._upstream_sync_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(resolved)
    logger.propagate = False
    return logger


def _coerce_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    if isinstance(value, int):
        return value
    raise ValueError(f"Unknown log level: {level!r}")


def log_exception(logger: logging.Logger, message: str, exc: BaseException, *, level: int = logging.ERROR) -> None:
    """Log ``message`` with the exception text; traceback only at DEBUG."""

    logger.log(level, "%s: %s", message, exc)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("Traceback for %s", message, exc_info=(type(exc), exc, exc.__traceback__))


def log_retry_attempt(
    logger: logging.Logger,
    operation: str,
    attempt: int,
    max_attempts: int,
    exc: Optional[BaseException] = None,
) -> None:
    """Log a retry of ``operation``."""

    if exc is None:
        logger.warning("Retrying %s (attempt %d/%d)", operation, attempt, max_attempts)
    else:
        logger.warning("Retrying %s (attempt %d/%d) after error: %s", operation, attempt, max_attempts, exc)


__all__ = [
    "DEFAULT_FORMAT",
    "VERBOSE_FORMAT",
    "log_exception",
    "log_retry_attempt",
    "setup_logging",
]

"""Structured logging configuration for nodebox.

Provides dual output strategy:
- console.print() for user-facing messages (Rich formatting)
- logging module for diagnostics (recovery attempts, docker calls, decisions)

Usage:
    from nodebox.logging import get_logger
    logger = get_logger(__name__)
    logger.info("Recovery attempt %d: %s", n, action)

Select verbosity via:
    - CLI flags: nodebox --verbose (INFO), nodebox --debug (DEBUG)
    - Environment: NODEBOX_DEBUG=1, or NODEBOX_LOG_LEVEL=info|debug|warning|error
"""

from __future__ import annotations

import logging
import os
import sys

ROOT_LOGGER = "nodebox"

_initialized = False

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_FORMAT_DEBUG = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_LEVEL_NAMES: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def _get_log_level() -> int:
    """Determine log level from environment.

    NODEBOX_DEBUG wins over NODEBOX_LOG_LEVEL; unknown names fall back to WARNING.
    """
    if os.environ.get("NODEBOX_DEBUG", "").lower() in ("1", "true", "yes"):
        return logging.DEBUG
    name = os.environ.get("NODEBOX_LOG_LEVEL", "").strip().lower()
    return _LEVEL_NAMES.get(name, logging.WARNING)


def _formatter_for(level: int) -> logging.Formatter:
    fmt = LOG_FORMAT_DEBUG if level <= logging.DEBUG else LOG_FORMAT
    return logging.Formatter(fmt, datefmt=DATE_FORMAT)


def _init_logging() -> None:
    """Attach a stderr handler to the nodebox root logger (called once)."""
    global _initialized
    if _initialized:
        return

    level = _get_log_level()
    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(level)

    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        handler.setFormatter(_formatter_for(level))
        root_logger.addHandler(handler)

    _initialized = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the nodebox namespace.

    Args:
        name: Module name (typically __name__).

    Returns:
        Configured logger instance.
    """
    _init_logging()

    if name != ROOT_LOGGER and not name.startswith(f"{ROOT_LOGGER}."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def set_level(level: int) -> None:
    """Change the level of the nodebox root logger and its handlers."""
    _init_logging()
    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(level)
    for handler in root_logger.handlers:
        handler.setLevel(level)
        handler.setFormatter(_formatter_for(level))


def set_debug(enabled: bool = True) -> None:
    """Enable or disable debug logging (CLI --debug)."""
    set_level(logging.DEBUG if enabled else logging.WARNING)

"""
Logging utilities for the discovery manager.

All loggers of the package hang below the ``discovery_manager`` logger so a
single call to :func:`setup_logging` configures the whole package.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

_PACKAGE = "discovery_manager"

# Package root logger
_root_logger = logging.getLogger(_PACKAGE)


def _is_enabled(record: logging.LogRecord) -> bool:
    # Child loggers reach our handlers even while the package logger is disabled
    return not _root_logger.disabled


def _to_level(level: str | int) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return level


def setup_logging(
    level: str | int = "WARNING",
    format: str | None = None,
    stream: TextIO | None = None,
    file: str | None = None,
) -> None:
    """
    Configure logging for the discovery manager.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL) or int
        format: Custom log format string
        stream: Output stream (defaults to stderr)
        file: Optional file path to write logs

    Example:
        from discovery_manager.logging import setup_logging

        setup_logging("DEBUG")
        setup_logging("INFO", file="discovery.log")
    """
    level = _to_level(level)
    _root_logger.setLevel(level)
    _root_logger.handlers.clear()

    if format is None:
        format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    formatter = logging.Formatter(format)

    stream_handler = logging.StreamHandler(stream or sys.stderr)
    stream_handler.setFormatter(formatter)
    stream_handler.setLevel(level)
    stream_handler.addFilter(_is_enabled)
    _root_logger.addHandler(stream_handler)

    if file:
        file_handler = logging.FileHandler(file)
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        file_handler.addFilter(_is_enabled)
        _root_logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger for a submodule.

    Args:
        name: Submodule name (e.g., "discovery.manager", "packages")

    Returns:
        Logger instance
    """
    if name == _PACKAGE or name.startswith(f"{_PACKAGE}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_PACKAGE}.{name}")


def set_level(level: str | int) -> None:
    """Set the log level for the discovery manager."""
    _root_logger.setLevel(_to_level(level))


def disable() -> None:
    """Disable all logging for the discovery manager."""
    _root_logger.disabled = True


def enable() -> None:
    """Re-enable logging for the discovery manager."""
    _root_logger.disabled = False

"""Logging setup utilities for worktracker.

Configures logging for the entire application based on the logging
configuration settings.
"""

from __future__ import annotations

import logging
import sys

from worktracker.config.settings import LoggingConfig


def setup_logging(config: LoggingConfig | None = None, verbose: bool = False) -> None:
    """Configure the ``worktracker`` logger.

    Sets up the package logger with the configured level and format, a
    stderr handler and an optional file handler. Calling it again
    replaces the handlers installed by a previous call.

    Args:
        config: Logging configuration. If None, uses defaults
                (INFO level, stderr output).
        verbose: Force DEBUG level regardless of the configured level.
    """
    if config is None:
        config = LoggingConfig()

    root_logger = logging.getLogger("worktracker")
    level = logging.DEBUG if verbose else getattr(logging, config.level.upper(), logging.INFO)
    root_logger.setLevel(level)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(config.format)

    # Console handler
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler (optional)
    if config.file:
        file_handler = logging.FileHandler(config.file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    root_logger.info("Logging initialized at %s level", logging.getLevelName(level))

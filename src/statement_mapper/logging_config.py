"""
Logging configuration for statement-mapper.

All modules log through the "statement_mapper" logger namespace. Console
output goes to stderr so that machine-readable CLI output on stdout
(``map --json``) stays parseable.
"""

import logging
import os
import sys
from typing import Optional, TextIO

PACKAGE_LOGGER = "statement_mapper"

SIMPLE_FORMAT = "%(levelname)s: %(message)s"
DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    level: Optional[str] = None,
    format_detailed: bool = False,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Set up logging for the statement_mapper package.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
               If None, will use environment variable LOG_LEVEL or default to INFO
        format_detailed: If True, use detailed format with timestamps and module names
        stream: Target stream for the console handler (defaults to stderr)

    Returns:
        Configured package logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)

    # Re-running setup (CLI tests, notebooks) must not stack handlers
    logger.handlers.clear()

    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(numeric_level)

    console_handler = logging.StreamHandler(stream or sys.stderr)
    console_handler.setLevel(numeric_level)

    if format_detailed or os.getenv("LOG_FORMAT", "").lower() == "detailed":
        formatter = logging.Formatter(DETAILED_FORMAT)
    else:
        formatter = logging.Formatter(SIMPLE_FORMAT)

    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    logger.propagate = False

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger instance for a specific module.

    Args:
        name: Module name (usually __name__)

    Returns:
        Logger instance under the statement_mapper namespace
    """
    if name is None:
        return logging.getLogger(PACKAGE_LOGGER)

    if not name.startswith(PACKAGE_LOGGER):
        if name.startswith("__main__"):
            name = f"{PACKAGE_LOGGER}.main"
        else:
            name = f'{PACKAGE_LOGGER}.{name.split(".")[-1]}'

    return logging.getLogger(name)

"""
Logging configuration for the sparse extent disk library.

Library modules log through child loggers of 'sparse_vmdk'. Nothing is
printed unless the application calls setup_logging().
"""

import logging
import sys
from typing import TextIO

# Log levels for the library
QUIET = logging.WARNING
NORMAL = logging.INFO
VERBOSE = logging.DEBUG

# Package logger, parent of every module logger
logger = logging.getLogger('sparse_vmdk')


def setup_logging(
    level: int = NORMAL,
    stream: TextIO | None = None,
    format_string: str | None = None
) -> logging.Handler:
    """
    Send package log records to a stream.

    Args:
        level: Logging level (QUIET, NORMAL, or VERBOSE)
        stream: Output stream (defaults to stderr)
        format_string: Custom format string (optional)

    Returns:
        The installed handler
    """
    if format_string is None:
        if level <= logging.DEBUG:
            format_string = '%(levelname)s: %(name)s: %(message)s'
        else:
            format_string = '%(message)s'

    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(format_string))

    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return handler


def set_level(level: int) -> None:
    """Change the package logging level."""
    logger.setLevel(level)


def get_logger(name: str | None = None) -> logging.Logger:
    """Child logger for a module, or the package logger if name is None."""
    if name is None:
        return logger
    return logger.getChild(name)


logger.addHandler(logging.NullHandler())

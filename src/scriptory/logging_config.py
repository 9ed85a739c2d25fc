"""Logging configuration for scriptory."""

import sys

from loguru import logger

_SHORT_FORMAT = "{level.icon} {message}"
_DEBUG_FORMAT = "{time:HH:mm:ss.SSS} {level.icon} {name}:{line} {message}"


def configure_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    """Send loguru output to stderr.

    Args:
        verbose: Log DEBUG and up, with timestamps and source location.
        quiet: Log only warnings and errors. Ignored when verbose is set.
    """
    logger.remove()
    if verbose:
        logger.add(sys.stderr, level="DEBUG", format=_DEBUG_FORMAT)
        return
    logger.add(sys.stderr, level="WARNING" if quiet else "INFO", format=_SHORT_FORMAT)

"""Logging configuration for the command line."""

import logging
import sys


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Attach a stderr handler to the ``mmsl`` logger.

    stdout is reserved for IR output, so log records always go to stderr.
    """
    logger = logging.getLogger("mmsl")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    # Remove existing handlers
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s - %(name)s - %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False

    return logger

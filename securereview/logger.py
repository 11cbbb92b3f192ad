"""Logging configuration for the secure code review action."""

import logging
import os
import sys

LOG_FORMAT = "[%(name)s] %(levelname)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a logger that writes to stderr.

    Stdout is reserved for the JSON result printed by the action, so every
    handler installed here targets stderr. The level comes from LOG_LEVEL
    (defaults to INFO).
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False

    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    return logger

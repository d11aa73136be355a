"""Logging setup for the ledger service."""

import logging
import sys

from pressledger.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | None = None) -> logging.Logger:
    """Configure the ``pressledger`` logger hierarchy.

    Installs one stream handler on the package logger. Calling it again
    only adjusts the level, so repeated app startups do not stack handlers.

    Args:
        level: Log level name. Defaults to ``settings.log_level``, or DEBUG
            when ``settings.debug`` is set.

    Returns:
        The configured package logger
    """
    if level is None:
        level = "DEBUG" if settings.debug else settings.log_level

    logger = logging.getLogger("pressledger")
    logger.setLevel(level.upper())

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger

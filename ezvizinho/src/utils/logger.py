"""
Ezvizinho - Logging
====================
Logger factory shared by every module so ingestion, retrieval and
synthesis logs read the same way.

Verbosity follows ``settings.ENV`` unless ``settings.LOG_LEVEL`` pins it:
  • ``"dev"``  → DEBUG level  (batch-by-batch ingestion progress)
  • ``"prod"`` → WARNING level (partial ingestions, failures)

Records go to **stderr** so the CLI scripts can print answers and
summaries on stdout without interleaving.

Usage:
    from ezvizinho.src.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("[INGEST] %d unique codes", n)
"""

import logging
import sys

from ezvizinho.config.settings import settings

_ENV_LEVEL_MAP = {
    "dev": logging.DEBUG,
    "prod": logging.WARNING,
}
_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _default_level() -> int:
    if settings.LOG_LEVEL:
        return logging.getLevelName(settings.LOG_LEVEL)
    return _ENV_LEVEL_MAP.get(settings.ENV, logging.INFO)


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Return a named logger with the project formatter attached.

    Args:
        name:  Typically ``__name__`` of the calling module.
        level: Explicit level override; derived from settings when *None*.
    """
    resolved_level = level if level is not None else _default_level()
    logger = logging.getLogger(name)

    # Handlers are attached once per logger name
    if not logger.handlers:
        logger.setLevel(resolved_level)

        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(resolved_level)
        handler.setFormatter(logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT))
        logger.addHandler(handler)

        logger.propagate = False

    return logger

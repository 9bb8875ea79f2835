"""Logging setup for the ``bookkeeping`` package.

``configure_logging`` attaches one stream handler to the package logger and
is called once by the application factory. Modules only call
``get_logger(__name__)`` and never add handlers of their own.
"""

import logging
import sys
from typing import IO

PACKAGE_LOGGER = "bookkeeping"
DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_configured = False


def parse_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        level = level.strip().upper()
        if level.isdigit():
            return int(level)
        numeric = logging.getLevelName(level)
        if isinstance(numeric, int):
            return numeric
    return logging.INFO


def configure_logging(level: int | str | None = None, *, stream: IO[str] = sys.stderr) -> None:
    global _configured
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(parse_level(level))
    if _configured:
        return

    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    root = logging.getLogger(PACKAGE_LOGGER)
    if not root.handlers:
        root.addHandler(logging.NullHandler())
    return logging.getLogger(name)

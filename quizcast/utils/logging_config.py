"""Logging configuration helpers for the quiz server."""

from __future__ import annotations

import logging
from logging import Logger

_QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool")


def configure_logging(level: str | int = logging.INFO) -> Logger:
    """Set up console logging for the server and return the ``quizcast`` logger.

    SQL echo stays at WARNING even when the server runs at DEBUG.
    """
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return logging.getLogger("quizcast")

"""Logging configuration helpers for the live quiz service."""

from __future__ import annotations

import logging
from logging import Logger


def configure_logging(level: str | int = logging.INFO) -> Logger:
    """Configure basic logging for the application and return the package logger."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    # uvicorn logs every polling request at INFO otherwise
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    return logging.getLogger("live_quiz")

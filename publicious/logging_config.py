"""Logging configuration utilities."""

from __future__ import annotations

import sys
from typing import Any

from loguru import logger


def configure_logging(level: str = "INFO", sink: Any = None, colorize: bool | None = None) -> int:
    """Replace loguru's sinks with a single one and return its id."""

    logger.remove()
    return logger.add(
        sink=sink if sink is not None else sys.stderr,
        level=level.upper(),
        backtrace=True,
        diagnose=False,
        colorize=colorize,
    )

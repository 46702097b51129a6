"""
Logging utilities for ctrv_tracking.

All modules get their logger through get_logger(__name__), so the whole package
hangs under the "ctrv_tracking" logger and is configured in one place.
"""

import logging
import sys
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER_NAME = "ctrv_tracking"

console = Console(stderr=True)


def setup_logger(
        name: str = ROOT_LOGGER_NAME,
        level: str = "WARNING",
        use_rich: bool = True,
) -> logging.Logger:
    """
    Setup a logger with consistent formatting.

    :param name: logger name, defaults to the package root logger
    :param level: logging level name, e.g. "DEBUG" or "INFO"
    :param use_rich: use a RichHandler for console output, otherwise a plain StreamHandler
    :return: the configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))
    # already configured, only the level changes
    if logger.handlers:
        return logger

    if use_rich:
        handler = RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )

    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger below the package root logger. The root logger is set up on first use.
    """
    if not logging.getLogger(ROOT_LOGGER_NAME).handlers:
        setup_logger()
    if name is None:
        return logging.getLogger(ROOT_LOGGER_NAME)
    return logging.getLogger(name)

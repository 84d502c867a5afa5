"""
Logging configuration for usage-sync.

Routes the package's log records through rich so they share the console
with the CLI output.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "usage_sync"


def setup_logging(level: int = logging.INFO, console: Optional[Console] = None) -> logging.Logger:
    """
    Set up logging for the package.

    Args:
        level: Logging level (default: INFO)
        console: Console to log to (default: a new stderr console)

    Returns:
        Configured package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Check if logger already has handlers
    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_time=False,
        show_path=False,
        markup=False,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    return logger

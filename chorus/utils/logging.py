"""Logging configuration for Chorus."""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from chorus.config.settings import LoggingConfig

PACKAGE_LOGGER = "chorus"

FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(config: Optional[LoggingConfig] = None, verbose: bool = False) -> logging.Logger:
    """Route the ``chorus`` logger to stderr through rich.

    Scheduler and supervisor modules log with ``logging.getLogger(__name__)``,
    so everything under ``chorus.`` ends up here. Agent text can contain
    square brackets, so rich markup is off.

    Args:
        config: The ``logging`` section of the settings
        verbose: Log at DEBUG and show source paths

    Returns:
        The package logger
    """
    config = config or LoggingConfig()
    level = logging.DEBUG if verbose else logging.getLevelName(config.level)

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    logger.handlers.clear()

    console_handler = RichHandler(
        console=Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=True,
        markup=False,
    )
    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    if config.file:
        log_file = Path(config.file).expanduser()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
        logger.addHandler(file_handler)

    return logger

"""Logging configuration for the DotBrain CLI."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from dotbrain.config.models import LoggingSettings

LOG_FILENAME = "dotbrain.log"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_HANDLER_MARKER = "_dotbrain_handler"


def configure_logging(
    settings: LoggingSettings,
    state_dir: Path,
    *,
    verbose: bool = False,
) -> logging.Logger:
    """Install the file and console handlers on the ``dotbrain`` logger.

    Args:
        settings: Level and rotation options.
        state_dir: Directory holding the rotating log file.
        verbose: When True, also log DEBUG records to stderr through rich.

    Returns:
        logging.Logger: The configured package logger.
    """
    logger = logging.getLogger("dotbrain")
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()

    level = logging.DEBUG if verbose else _parse_level(settings.level)
    logger.setLevel(level)

    try:
        state_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            state_dir / LOG_FILENAME,
            maxBytes=settings.max_size_mb * 1024 * 1024,
            backupCount=settings.backup_count,
            encoding="utf-8",
        )
    except OSError as exc:
        logger.warning("File logging disabled: %s", exc)
    else:
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        setattr(file_handler, _HANDLER_MARKER, True)
        logger.addHandler(file_handler)

    if verbose:
        console_handler = RichHandler(
            console=Console(stderr=True), show_path=False, rich_tracebacks=True
        )
        console_handler.setLevel(logging.DEBUG)
        setattr(console_handler, _HANDLER_MARKER, True)
        logger.addHandler(console_handler)

    return logger


def _parse_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.WARNING


__all__ = ["configure_logging", "LOG_FILENAME"]

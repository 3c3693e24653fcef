"""Logging setup — module loggers under ``sheetvault`` rendered by rich."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "sheetvault"

_handler: RichHandler | None = None


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Attach one rich handler (stderr) to the package logger.

    Safe to call repeatedly; later calls only adjust the level.
    """
    global _handler

    logger = logging.getLogger(LOGGER_NAME)
    level = logging.DEBUG if verbose else logging.WARNING
    if _handler is None:
        _handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=False,
        )
        _handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(_handler)
        logger.propagate = False
    logger.setLevel(level)
    _handler.setLevel(level)
    return logger


def reset_logging() -> None:
    """Remove the installed handler and restore the logger defaults."""
    global _handler
    if _handler is not None:
        logger = logging.getLogger(LOGGER_NAME)
        logger.removeHandler(_handler)
        logger.setLevel(logging.NOTSET)
        logger.propagate = True
        _handler = None

"""Logging utilities for Ember.

Library modules log through ``get_logger(__name__)``; only the CLI calls
``configure_logging()``, which routes the ``ember`` logger tree to stderr via
rich so log lines never interleave with streamed model output on stdout.
"""

from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

_ROOT_NAME = "ember"
_DEFAULT_LEVEL = os.environ.get("EMBER_LOG_LEVEL", "WARNING")


def configure_logging(level: str | int = _DEFAULT_LEVEL, *, console: Console | None = None) -> None:
    """Configure the ``ember`` logger with a rich stderr handler.

    Calling it again replaces the handler, so the level can be raised later
    (e.g. by ``--verbose``).
    """
    logging.captureWarnings(True)
    logger = logging.getLogger(_ROOT_NAME)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.handlers = [handler]
    logger.propagate = False


def get_logger(name: str = _ROOT_NAME) -> logging.Logger:
    """Return a logger inside the ``ember`` namespace."""
    if name != _ROOT_NAME and not name.startswith(f"{_ROOT_NAME}."):
        name = f"{_ROOT_NAME}.{name}"
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]

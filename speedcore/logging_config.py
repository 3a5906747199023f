"""Logging configuration for the EZSpeedTest CLI."""
from __future__ import annotations

import logging
import os
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOG_LEVEL_ENV = "EZSPEEDTEST_LOG_LEVEL"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def resolve_level(verbose: bool = False) -> int:
    """``--verbose`` wins; otherwise ``EZSPEEDTEST_LOG_LEVEL`` (default WARNING)."""
    if verbose:
        return logging.DEBUG
    name = os.environ.get(LOG_LEVEL_ENV, "WARNING").upper()
    return _LEVELS.get(name, logging.WARNING)


def configure_logging(verbose: bool = False, console: Optional[Console] = None) -> int:
    """Route all log records to stderr through ``rich``.

    Returns the level that was applied.

    Examples::

        $ python ezspeedtest.py --verbose
        $ EZSPEEDTEST_LOG_LEVEL=INFO python ezspeedtest.py --ping 1.1.1.1
    """
    level = resolve_level(verbose)
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    logging.getLogger(__name__).debug(
        "Logging configured: level=%s", logging.getLevelName(level)
    )
    return level

"""Logging setup: rich output plus preference-driven debug levels."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rich.logging import RichHandler

from .constants import DEBUG_LEVEL_PREF, DEBUG_PREF
from .display import console
from .errors import RemoteContentError

if TYPE_CHECKING:
    from .config import Preferences

PACKAGE_LOGGER = "remote_content_by_folder"


class DebugLevelFilter(logging.Filter):
    """Pass leveled debug records only when the debug preferences allow it.

    Preferences are read for every record so that turning debugging on or off
    takes effect without a restart.
    """

    def __init__(self, prefs: Preferences) -> None:
        super().__init__()
        self.prefs = prefs

    def filter(self, record: logging.LogRecord) -> bool:
        level = getattr(record, "debug_level", None)
        if level is None:
            return record.levelno > logging.DEBUG or self._debug_enabled()
        if not self._debug_enabled():
            return False
        try:
            max_level = int(self.prefs.get(DEBUG_LEVEL_PREF))
        except (OSError, RemoteContentError):
            max_level = 1
        return level <= max_level

    def _debug_enabled(self) -> bool:
        try:
            return bool(self.prefs.get(DEBUG_PREF))
        except (OSError, RemoteContentError):
            # Unreadable preferences should not hide diagnostics.
            return True


def debug(logger: logging.Logger, level: int, msg: str, *args: object) -> None:
    """Log a debug message tagged with a verbosity level (1 or 2)."""
    logger.debug(msg, *args, extra={"debug_level": level})


def configure_logging(prefs: Preferences) -> logging.Handler:
    """Route the package logger through rich and the debug-level filter."""
    handler = RichHandler(console=console, show_path=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.addFilter(DebugLevelFilter(prefs))

    logger = logging.getLogger(PACKAGE_LOGGER)
    for existing in list(logger.handlers):
        if isinstance(existing, RichHandler):
            logger.removeHandler(existing)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    return handler

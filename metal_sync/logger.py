"""Logging setup for the metal_sync process.

Engine modules only call ``logging.getLogger(__name__)``; the process
entrypoint decides where records go.
"""
import logging
import sys
from typing import TextIO

_HANDLER_NAME = "metal_sync"
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Per-request lines from the HTTP clients drown out refresh summaries.
_QUIET_LOGGERS = ("httpx", "httpcore", "urllib3", "requests")


def resolve_level(level_name: str | None) -> int:
    """Map a level name such as ``"debug"`` to its numeric value.

    Unknown names fall back to INFO.

    Example:
        >>> resolve_level("warning")
        30
        >>> resolve_level("loud")
        20
    """
    level = logging.getLevelName((level_name or "INFO").strip().upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(level_name: str | None = None, stream: TextIO | None = None) -> int:
    """Install the metal_sync stderr handler on the root logger.

    Calling it again only updates the level; an existing handler installed
    by something else (e.g. a test runner) is left in place.
    """
    level = resolve_level(level_name)
    root = logging.getLogger()

    if not root.handlers:
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT))
        root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    return level


__all__ = ["resolve_level", "setup_logging"]

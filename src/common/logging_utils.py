"""Centralized logging helpers.

Provides the root logging configuration, structured ``extra`` payloads for
DEBUG traces, a small timing context manager and URL sanitizing for log output.
"""
from __future__ import annotations

import logging
import os
import sys
import time
from typing import Any, Dict, Optional
from urllib.parse import urlsplit, urlunsplit

from constants import Constants

_CONFIGURED_HANDLER_NAME = "carguix-stderr"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the root logger to write to stderr.

    The level is taken from ``level`` or $CARGUIX_LOG_LEVEL, defaulting to INFO.
    Calling this more than once does not stack handlers.
    """
    level_name = (level or os.environ.get("CARGUIX_LOG_LEVEL") or "INFO").upper()
    level_value = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level_value)
    for handler in root.handlers:
        if handler.get_name() == _CONFIGURED_HANDLER_NAME:
            return

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_CONFIGURED_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
    root.addHandler(handler)


def add_file_handler(path: str) -> None:
    """Mirror log records into ``path``."""
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s " + Constants.LOG_FORMAT))
    logging.getLogger().addHandler(handler)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build an ``extra`` mapping for structured log records.

    None values are dropped so records stay compact.
    """
    return {key: value for key, value in fields.items() if value is not None}


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records from ``logger`` would be emitted."""
    return logger.isEnabledFor(logging.DEBUG)


def safe_url(url: str) -> str:
    """Strip credentials, query string and fragment from a URL for logging."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return "[unparseable-url]"
    netloc = parts.hostname or ""
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    return urlunsplit((parts.scheme, netloc, parts.path, "", ""))


class Timer:
    """Context manager measuring wall-clock duration."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        self._end = None
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        """Elapsed milliseconds, up to now if the block is still running."""
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)

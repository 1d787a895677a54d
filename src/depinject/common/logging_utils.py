"""Logging helpers shared by every component.

Components log through a module-level ``logging.getLogger(__name__)``. DEBUG
traces carry structured fields built with :func:`extra_context` and are gated
by :func:`is_debug_enabled` so the dict is never built when nobody listens.
"""
from __future__ import annotations

import logging
import os
import time
import urllib.parse
from typing import Any, Dict, Optional

from ..constants import Constants

_ENV_LOG_LEVEL = f"{Constants.ENV_PREFIX}LOG_LEVEL"


def configure_logging(level: Optional[str] = None) -> None:
    """Install a single stream handler on the root logger.

    Args:
        level: Level name; defaults to DEPINJECT_LOG_LEVEL or INFO.
    """
    level_name = (level or os.environ.get(_ENV_LOG_LEVEL) or "INFO").upper()
    root = logging.getLogger()
    if not any(getattr(h, "_depinject", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
        handler._depinject = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(getattr(logging, level_name, logging.INFO))


def is_debug_enabled(logger: logging.Logger) -> bool:
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build the ``extra`` mapping for a structured log record, dropping None values."""
    return {key: value for key, value in fields.items() if value is not None}


def safe_url(url: str) -> str:
    """Strip credentials and query strings from a URL before logging it."""
    try:
        parts = urllib.parse.urlsplit(url)
    except ValueError:
        return "<invalid-url>"
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return urllib.parse.urlunsplit((parts.scheme, host, parts.path, "", ""))


class Timer:
    """Context manager measuring wall-clock duration."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)

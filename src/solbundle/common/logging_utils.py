"""Logging helpers shared by resolver, registry and workspace modules.

Structured context is attached through ``extra=`` so log handlers can pick up
fields like ``event`` or ``component`` without parsing messages.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Any, Dict, Optional
from urllib.parse import urlsplit, urlunsplit

from ..constants import Constants

_SENSITIVE_QUERY = re.compile(r"(token|key|secret|password|auth)=[^&]*", re.IGNORECASE)


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Configure the root logger with the project format."""
    handlers: list = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=Constants.LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records would be emitted by this logger."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build an ``extra`` mapping, dropping fields whose value is None."""
    return {k: v for k, v in fields.items() if v is not None}


def redact(text: str) -> str:
    """Mask credential-looking query parameters."""
    return _SENSITIVE_QUERY.sub(lambda m: f"{m.group(1)}=[REDACTED]", text)


def safe_url(url: str) -> str:
    """Strip userinfo and credential parameters from a URL for logging."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return redact(url)
    netloc = parts.hostname or ""
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    return urlunsplit((parts.scheme, netloc, parts.path, redact(parts.query), ""))


class Timer:
    """Context manager measuring wall time in milliseconds."""

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

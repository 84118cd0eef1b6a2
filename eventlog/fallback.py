"""Fallback structured-log sinks used when the motion log file is failing.

The OS-level durable log (Windows Event Log, syslog) may be missing or not
writable in restricted environments; nothing here is allowed to make that
fatal.
"""

from __future__ import annotations

import contextlib
import logging
import logging.handlers
import os
import sys
from enum import Enum
from typing import Optional, Protocol

_LOG = logging.getLogger(__name__)


class Severity(str, Enum):
    WARNING = "warning"
    ERROR = "error"


_LEVELS = {
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


class FallbackSink(Protocol):
    def write(self, source_name: str, message: str, severity: Severity) -> None: ...


class LoggingFallbackSink:
    """Forward fallback entries to a stdlib logger at the matching level."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger("motionwatch.fallback")

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def write(self, source_name: str, message: str, severity: Severity) -> None:
        self._logger.log(_LEVELS[severity], "%s: %s", source_name, message)


def _os_handler(source_name: str) -> Optional[logging.Handler]:
    """Best-effort OS log handler; None when unavailable."""
    if sys.platform.startswith("win"):
        try:
            # Needs pywin32 and (the first time) rights to register the source.
            return logging.handlers.NTEventLogHandler(source_name)
        except Exception as exc:
            _LOG.debug("NT event log unavailable for %s: %s", source_name, exc)
            return None
    if os.path.exists("/dev/log"):
        try:
            handler = logging.handlers.SysLogHandler(address="/dev/log")
        except OSError as exc:
            _LOG.debug("syslog unavailable: %s", exc)
            return None
        handler.setFormatter(logging.Formatter(f"{source_name}: %(message)s"))
        return handler
    return None


def make_system_fallback_sink(source_name: str) -> LoggingFallbackSink:
    """Build a sink that also reaches the OS log when one can be attached."""
    logger = logging.getLogger(f"motionwatch.fallback.{source_name}")
    handler = _os_handler(source_name)
    if handler is not None and not any(type(h) is type(handler) for h in logger.handlers):
        with contextlib.suppress(Exception):
            logger.addHandler(handler)
    return LoggingFallbackSink(logger)

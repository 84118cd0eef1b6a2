"""Durable motion log with fallback escalation."""

from __future__ import annotations

from .fallback import FallbackSink, LoggingFallbackSink, Severity, make_system_fallback_sink
from .writer import LogConfig, LogHealth, LogWriteTimeoutError, ResilientLogger

__all__ = [
    "ResilientLogger",
    "LogConfig",
    "LogHealth",
    "LogWriteTimeoutError",
    "FallbackSink",
    "LoggingFallbackSink",
    "Severity",
    "make_system_fallback_sink",
]

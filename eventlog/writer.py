from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Optional

from common.cooldown import CooldownClock
from common.time import format_log_ts, now_ms

from .fallback import FallbackSink, LoggingFallbackSink, Severity

_LOG = logging.getLogger(__name__)


def _default_log_path() -> Path:
    return Path.cwd() / "motion_log.txt"


@dataclass
class LogConfig:
    """Configuration for :class:`ResilientLogger`.

    Parameters
    ----------
    path:
        Motion log file; one ``<yyyy-MM-dd HH:mm:ss.fff>: <message>`` line per
        entry, appended as UTF-8. The parent directory is created on demand.
    enabled:
        When False, :meth:`ResilientLogger.log` is a no-op.
    max_consecutive_failures:
        Consecutive append failures after which file logging is considered
        critically failed and entries go to the fallback sink only.
    notification_cooldown_ms:
        Minimum interval between critical-failure notifications.
    write_timeout_s:
        Upper bound on a single append; a slower write counts as a failure.
    source_name:
        Source name reported to the fallback sink.
    """

    path: Path = field(default_factory=_default_log_path)
    enabled: bool = True
    max_consecutive_failures: int = 5
    notification_cooldown_ms: float = 5 * 60 * 1000.0
    write_timeout_s: float = 2.0
    source_name: str = "MotionWatch"


@dataclass
class LogHealth:
    consecutive_failures: int = 0
    critically_failed: bool = False


class LogWriteTimeoutError(OSError):
    """An append did not complete within ``write_timeout_s``."""


class ResilientLogger:
    """Append-only motion log that escalates to a fallback sink on failure.

    - A successful append resets the failure counter and clears the critical
      flag.
    - A failed append is reported to the fallback sink (warning below the
      threshold, error at it); at the threshold file logging is marked
      critically failed and the operator notifier fires, at most once per
      ``notification_cooldown_ms``.
    - While critically failed the file is not touched at all. There is no
      automatic retry: call :meth:`reset` to resume file appends.

    Nothing raised by the fallback sink or the notifier escapes :meth:`log`.
    """

    def __init__(
        self,
        config: Optional[LogConfig] = None,
        fallback: Optional[FallbackSink] = None,
        notifier: Optional[Callable[[str], None]] = None,
        clock: Callable[[], float] = now_ms,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._cfg = config or LogConfig()
        self._fallback: FallbackSink = fallback or LoggingFallbackSink()
        self._notifier = notifier
        self._clock = clock
        self._log = logger or _LOG

        self._health = LogHealth()
        self._notify_clock = CooldownClock(
            name="log-error-notification",
            cooldown_ms=float(self._cfg.notification_cooldown_ms),
        )
        # Serializes log() callers and guards the file-write critical section.
        self._lock = threading.RLock()
        self._pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="motion-log")

    def __enter__(self) -> ResilientLogger:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------ helpers

    @property
    def config(self) -> LogConfig:
        return self._cfg

    @property
    def health(self) -> LogHealth:
        with self._lock:
            return replace(self._health)

    def _append_line(self, line: str) -> None:
        path = Path(self._cfg.path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8", newline="") as fh:
            fh.write(line)

    def _write_bounded(self, line: str) -> None:
        fut = self._pool.submit(self._append_line, line)
        try:
            fut.result(timeout=float(self._cfg.write_timeout_s))
        except FutureTimeoutError:
            fut.cancel()
            raise LogWriteTimeoutError(
                f"append to {self._cfg.path} did not finish within {self._cfg.write_timeout_s:.2f}s"
            ) from None

    def _to_fallback(self, message: str, severity: Severity) -> None:
        try:
            self._fallback.write(self._cfg.source_name, message, severity)
        except Exception as exc:
            self._log.debug("Fallback log sink failed (%s): %s", exc, message)

    def _notify(self, text: str) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier(text)
        except Exception as exc:
            self._log.debug("Critical logging notifier failed: %s", exc)

    def _on_success(self) -> None:
        if self._health.critically_failed:
            self._log.debug("File logging recovered from critical failure.")
        self._health.consecutive_failures = 0
        self._health.critically_failed = False

    def _on_failure(self, message: str, exc: BaseException, now: float) -> None:
        h = self._health
        h.consecutive_failures += 1
        n = h.consecutive_failures
        limit = int(self._cfg.max_consecutive_failures)
        self._log.debug("Error logging event to file (attempt %d): %s", n, exc)

        severity = Severity.ERROR if n >= limit else Severity.WARNING
        self._to_fallback(f"FILE LOGGING ERROR (Attempt {n}): {message} - Details: {exc}", severity)

        if n >= limit:
            h.critically_failed = True
            if self._notify_clock.try_fire(now):
                self._notify(
                    f"CRITICAL ERROR: File logging to '{self._cfg.path}' has failed {n} times. "
                    "Future events will be logged to the fallback log only. "
                    f"Please check file permissions or disk space. Last error: {exc}"
                )

    # ------------------------------------------------------------------ public

    def log(self, message: str) -> None:
        """Append ``message`` to the motion log; never raises."""
        if not self._cfg.enabled:
            return
        with self._lock:
            now = float(self._clock())
            if self._health.critically_failed:
                self._to_fallback(f"FILE LOGGING CRITICALLY FAILED: {message}", Severity.WARNING)
                return

            line = f"{format_log_ts(now)}: {message}\n"
            try:
                self._write_bounded(line)
            except Exception as exc:
                self._on_failure(message, exc, now)
            else:
                self._on_success()

    def reset(self) -> None:
        """Clear the failure state so the next :meth:`log` tries the file again."""
        with self._lock:
            self._health = LogHealth()

    def close(self) -> None:
        self._pool.shutdown(wait=False)

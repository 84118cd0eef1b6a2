from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, List, Optional, Protocol

import numpy as np

from common.cooldown import Channel, CooldownGate
from common.time import format_log_ts

from .errors import PipelineErrorKind
from .events import MotionEvent, MotionEventConfig, MotionEventKind, MotionState, MotionStateMachine
from .model import MotionResult

_LOG = logging.getLogger(__name__)

STATUS_MOTION = "MOTION DETECTED!"
STATUS_IDLE = "No motion detected."
STATUS_SAVE_FAILED = "Error saving motion event!"

ROI_WARNING = "WARNING: ROI is out of image bounds. Processing full frame."
FILTER_WARNING = "WARNING: Blob extraction failed. Treating frame as no motion."

_DEGRADED_WARNINGS = {
    PipelineErrorKind.ROI_INVALID: ROI_WARNING,
    PipelineErrorKind.FILTER_FAILURE: FILTER_WARNING,
}


class EventLog(Protocol):
    def log(self, message: str) -> None: ...


class SnapshotSink(Protocol):
    @property
    def base_dir(self) -> Path: ...
    def ensure_dir(self) -> bool: ...
    def save(self, img: np.ndarray, ts_ms: float) -> Path: ...


@dataclass
class DispatchConfig:
    """Side-effect switches and cooldowns for the motion dispatcher."""

    alert_enabled: bool = True
    save_enabled: bool = True
    status_enabled: bool = True

    alert_cooldown_ms: float = 5000.0
    snapshot_cooldown_ms: float = 3000.0


@dataclass
class DispatchOutcome:
    """What one cycle of dispatching did; handed to the presentation side."""

    event: Optional[MotionEvent] = None
    status: Optional[str] = None
    alert_fired: bool = False
    snapshot_path: Optional[Path] = None
    warnings: List[str] = field(default_factory=list)


class MotionEventDispatcher:
    """Drive cooldown-gated side effects from per-frame motion results.

    Owns the session's :class:`MotionStateMachine` and :class:`CooldownGate`.
    Every side channel (alert sink, snapshot store, log) is treated as
    fallible: failures are logged and reported in the outcome, never raised.

    The collaborators are expected to expose:

        - ``log(message)`` on the event log
        - ``base_dir``, ``ensure_dir() -> bool`` and ``save(img, ts_ms) -> Path``
          on the snapshot store
        - a zero-argument callable for the alert
    """

    def __init__(
        self,
        event_log: EventLog,
        config: Optional[DispatchConfig] = None,
        event_config: Optional[MotionEventConfig] = None,
        alert: Optional[Callable[[], Any]] = None,
        snapshots: Optional[SnapshotSink] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._event_log = event_log
        self._cfg = config or DispatchConfig()
        self._machine = MotionStateMachine(event_config)
        self._gate = CooldownGate(
            {
                Channel.ALERT: self._cfg.alert_cooldown_ms,
                Channel.SNAPSHOT: self._cfg.snapshot_cooldown_ms,
            }
        )
        self._alert = alert
        self._snapshots = snapshots
        self._log = logger or _LOG

    @property
    def state(self) -> MotionState:
        return self._machine.state

    @property
    def machine(self) -> MotionStateMachine:
        return self._machine

    @property
    def gate(self) -> CooldownGate:
        return self._gate

    def reset(self) -> None:
        """Clear motion state and cooldown clocks (start of a session)."""
        self._machine.reset()
        self._gate.reset()

    # ------------------------------------------------------------------ helpers

    def _status(self, text: str) -> Optional[str]:
        return text if self._cfg.status_enabled else None

    def _report_degraded(self, res: MotionResult, out: DispatchOutcome) -> None:
        for kind in res.degraded:
            msg = _DEGRADED_WARNINGS.get(kind)
            if msg is None:
                continue
            self._log.debug("Degraded cycle on frame %d: %s", res.frame_id, kind.value)
            self._event_log.log(msg)
            out.warnings.append(msg)

    def _fire_alert(self, now: float, out: DispatchOutcome) -> None:
        if not self._cfg.alert_enabled or self._alert is None:
            return
        if not self._gate.try_fire(Channel.ALERT, now):
            return
        try:
            self._alert()
        except Exception as exc:
            self._event_log.log(f"ERROR: Failed to play alert: {exc}")
            return
        out.alert_fired = True
        self._event_log.log("INFO: Alert sound played.")

    def _save_snapshot(self, original: Optional[np.ndarray], now: float, out: DispatchOutcome) -> None:
        if not self._cfg.save_enabled or self._snapshots is None or original is None:
            return
        if not self._gate.try_fire(Channel.SNAPSHOT, now):
            return
        try:
            if self._snapshots.ensure_dir():
                self._event_log.log(f"INFO: Created save directory: {self._snapshots.base_dir}")
            path = self._snapshots.save(original, now)
        except Exception as exc:
            self._log.warning("Snapshot save failed (non-fatal): %s", exc)
            self._event_log.log(f"ERROR: Failed to save snapshot: {exc}")
            out.status = self._status(STATUS_SAVE_FAILED)
            return
        out.snapshot_path = path
        self._event_log.log(f"SAVED snapshot: {path.name}")
        out.status = self._status(f"Saved motion event: {path.name}")

    # ------------------------------------------------------------------ public

    def handle(self, res: MotionResult, original: Optional[np.ndarray] = None) -> DispatchOutcome:
        """Consume one cycle's result.

        ``original`` is the un-annotated frame copy used for snapshots.
        """
        out = DispatchOutcome()
        now = float(res.ts_ms)

        self._report_degraded(res, out)

        ev = self._machine.update(res.motion_detected, now)
        out.event = ev

        if res.motion_detected:
            if ev is not None and ev.kind is MotionEventKind.STARTED:
                self._event_log.log(f"MOTION STARTED at {format_log_ts(ev.start_ms)}")
                out.status = self._status(STATUS_MOTION)
            self._fire_alert(now, out)
            self._save_snapshot(original, now, out)
            return out

        if ev is not None and ev.kind is MotionEventKind.STOPPED:
            duration_s = (ev.duration_ms or 0.0) / 1000.0
            self._event_log.log(f"MOTION STOPPED at {format_log_ts(ev.at_ms)}. Duration: {duration_s:.1f}s")
            out.status = self._status(STATUS_IDLE)
        elif self._machine.state is MotionState.INACTIVE:
            out.status = self._status(STATUS_IDLE)
        return out

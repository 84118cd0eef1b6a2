from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class MotionState(str, Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"


class MotionEventKind(str, Enum):
    STARTED = "motion_started"
    ONGOING = "motion_ongoing"
    STOPPED = "motion_stopped"


@dataclass(frozen=True)
class MotionEvent:
    """
    One motion-lifecycle transition (or an ongoing-motion tick).

    ``start_ms`` is the start of the current motion window. ``duration_ms``
    is only set on STOPPED events.
    """

    kind: MotionEventKind
    at_ms: float
    start_ms: float
    duration_ms: Optional[float] = None


@dataclass
class MotionEventConfig:
    """
    Configuration for the MotionStateMachine.

    The grace period absorbs short detection dropouts so the reported state
    does not flap.
    """

    grace_ms: float = 500.0


@dataclass
class PipelineState:
    """Explicit per-session motion state; mutated only by MotionStateMachine."""

    state: MotionState = MotionState.INACTIVE
    current_motion_start_ms: Optional[float] = None
    last_motion_detection_ms: Optional[float] = None


class MotionStateMachine:
    """
    Turn the per-frame ``motion_detected`` boolean into lifecycle events.

    API:
        machine = MotionStateMachine(MotionEventConfig())
        ev = machine.update(motion_detected, now_ms)   # MotionEvent | None
        machine.reset()                                # on session start

    There is no terminal state: the machine runs for the lifetime of a
    capture session.
    """

    def __init__(self, config: Optional[MotionEventConfig] = None) -> None:
        self._cfg = config or MotionEventConfig()
        self._st = PipelineState()

    @property
    def state(self) -> MotionState:
        return self._st.state

    @property
    def snapshot(self) -> PipelineState:
        return PipelineState(
            state=self._st.state,
            current_motion_start_ms=self._st.current_motion_start_ms,
            last_motion_detection_ms=self._st.last_motion_detection_ms,
        )

    def reset(self) -> None:
        self._st = PipelineState()

    def update(self, motion_detected: bool, now_ms: float) -> Optional[MotionEvent]:
        st = self._st
        now = float(now_ms)

        if motion_detected:
            if st.state is MotionState.INACTIVE:
                st.state = MotionState.ACTIVE
                st.current_motion_start_ms = now
                st.last_motion_detection_ms = now
                return MotionEvent(kind=MotionEventKind.STARTED, at_ms=now, start_ms=now)

            st.last_motion_detection_ms = now
            return MotionEvent(
                kind=MotionEventKind.ONGOING,
                at_ms=now,
                start_ms=_or(st.current_motion_start_ms, now),
            )

        if st.state is MotionState.ACTIVE:
            last = _or(st.last_motion_detection_ms, now)
            if now - last > self._cfg.grace_ms:
                start = _or(st.current_motion_start_ms, last)
                st.state = MotionState.INACTIVE
                return MotionEvent(
                    kind=MotionEventKind.STOPPED,
                    at_ms=now,
                    start_ms=start,
                    duration_ms=now - start,
                )

        # Within the grace period, or already inactive.
        return None


def _or(value: Optional[float], default: float) -> float:
    return default if value is None else value

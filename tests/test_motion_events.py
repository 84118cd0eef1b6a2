from __future__ import annotations

import math

from analysis.motion import MotionEventConfig, MotionEventKind, MotionState, MotionStateMachine


def _run(machine: MotionStateMachine, seq):
    events = []
    for t_ms, detected in seq:
        ev = machine.update(detected, t_ms)
        if ev is not None:
            events.append(ev)
    return events


def test_short_gaps_within_grace_keep_motion_active():
    machine = MotionStateMachine(MotionEventConfig(grace_ms=500.0))

    events = _run(machine, [(0.0, True), (100.0, False), (200.0, False), (300.0, True)])

    kinds = [e.kind for e in events]
    assert MotionEventKind.STOPPED not in kinds
    assert kinds.count(MotionEventKind.STARTED) == 1
    assert machine.state is MotionState.ACTIVE


def test_single_start_and_stop_with_duration():
    machine = MotionStateMachine(MotionEventConfig(grace_ms=500.0))

    seq = [(1000.0, True)] + [(1000.0 + 100.0 * i, False) for i in range(1, 8)]
    events = _run(machine, seq)

    starts = [e for e in events if e.kind is MotionEventKind.STARTED]
    stops = [e for e in events if e.kind is MotionEventKind.STOPPED]
    assert len(starts) == 1 and len(stops) == 1

    # 500 ms is not "more than" the grace period; 600 ms is.
    stop = stops[0]
    assert math.isclose(stop.at_ms, 1600.0)
    assert math.isclose(stop.duration_ms, stop.at_ms - starts[0].at_ms)
    assert math.isclose(stop.start_ms, 1000.0)
    assert machine.state is MotionState.INACTIVE


def test_grace_is_measured_from_last_detection_not_start():
    machine = MotionStateMachine(MotionEventConfig(grace_ms=500.0))
    seq = [(0.0, True), (400.0, True), (800.0, False), (950.0, False)]

    events = _run(machine, seq)

    assert [e.kind for e in events] == [MotionEventKind.STARTED, MotionEventKind.ONGOING, MotionEventKind.STOPPED]
    assert math.isclose(events[-1].duration_ms, 950.0)


def test_ongoing_events_carry_window_start():
    machine = MotionStateMachine()
    machine.update(True, 10.0)
    ev = machine.update(True, 40.0)
    assert ev.kind is MotionEventKind.ONGOING
    assert ev.start_ms == 10.0
    assert machine.snapshot.last_motion_detection_ms == 40.0


def test_no_motion_while_inactive_is_silent():
    machine = MotionStateMachine()
    assert machine.update(False, 0.0) is None
    assert machine.update(False, 10_000.0) is None
    assert machine.state is MotionState.INACTIVE


def test_reset_clears_state_and_timestamps():
    machine = MotionStateMachine()
    machine.update(True, 0.0)
    machine.reset()

    st = machine.snapshot
    assert st.state is MotionState.INACTIVE
    assert st.current_motion_start_ms is None
    assert st.last_motion_detection_ms is None
    assert machine.update(True, 5.0).kind is MotionEventKind.STARTED

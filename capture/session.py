from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from analysis.motion.dispatcher import EventLog, MotionEventDispatcher
from analysis.motion.engine import MotionEngine
from analysis.motion.errors import InvalidFrameError
from common.frame import Frame

from .presentation import LatestFrameSlot, PresentationSink, PresentedFrame
from .source import FrameSource

_LOG = logging.getLogger(__name__)


@dataclass
class SessionStats:
    frames_in: int = 0
    frames_processed: int = 0
    frames_ignored: int = 0  # arrived while the session was not running
    degraded_cycles: int = 0
    errors: int = 0


class CaptureSession:
    """One capture session: a frame source feeding one motion pipeline.

    - :meth:`on_frame` is the source callback. Cycles are serialized by a
      session lock, so the engine's background frame and the dispatcher's
      motion state are only ever touched by one cycle at a time.
    - Each cycle publishes exactly one :class:`PresentedFrame`.
    - A precondition failure (bad frame, geometry change) is logged and
      stops the session.
    - :meth:`start` resets motion state, cooldowns and the background model;
      :meth:`stop` drains the in-flight cycle before releasing anything.
    """

    def __init__(
        self,
        source: FrameSource,
        engine: MotionEngine,
        dispatcher: MotionEventDispatcher,
        event_log: EventLog,
        presentation: Optional[PresentationSink] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._source = source
        self._engine = engine
        self._dispatcher = dispatcher
        self._event_log = event_log
        self._presentation: PresentationSink = presentation or LatestFrameSlot()
        self._on_error = on_error
        self._log = logger or _LOG

        # Re-entrant: a failing cycle stops the session from inside on_frame.
        self._lock = threading.RLock()
        self._running = False
        self._live = False  # started and not yet stopped
        # Guards the _live hand-off; _released is set when no release is pending.
        self._stop_lock = threading.Lock()
        self._released = threading.Event()
        self._released.set()
        self._stopping_thread: Optional[int] = None
        self._cycle_thread: Optional[int] = None
        self._last_error: Optional[BaseException] = None
        self.stats = SessionStats()

    def __enter__(self) -> CaptureSession:
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # ------------------------------------------------------------------ props

    @property
    def running(self) -> bool:
        return self._running

    @property
    def last_error(self) -> Optional[BaseException]:
        return self._last_error

    @property
    def presentation(self) -> PresentationSink:
        return self._presentation

    # ------------------------------------------------------------------ helpers

    def _set_status(self, text: str) -> None:
        try:
            self._presentation.set_status(text)
        except Exception as exc:
            self._log.debug("Status update failed: %s", exc)

    def _attempt(self, what: str, fn: Callable[[], object]) -> bool:
        try:
            fn()
        except Exception as exc:
            self._log.warning("Failed to %s: %s", what, exc)
            self._event_log.log(f"ERROR: Failed to {what}: {exc}")
            return False
        return True

    @staticmethod
    def _clone(frame: Frame) -> Frame:
        # The source owns its buffer until the callback returns.
        if frame is None or getattr(frame, "img", None) is None:
            raise InvalidFrameError("frame source delivered an empty frame")
        return Frame(img=np.array(frame.img, copy=True), ts_ms=frame.ts_ms, frame_id=frame.frame_id)

    def _fail(self, exc: BaseException) -> None:
        self._last_error = exc
        self.stats.errors += 1
        self._log.error("Frame cycle aborted, stopping session: %s", exc)
        self._event_log.log(f"ERROR: Exception in frame handler: {exc}")
        self._set_status("Error processing frame. Camera stopped.")
        self.stop()
        if self._on_error is not None:
            try:
                self._on_error(exc)
            except Exception as cb_exc:
                self._log.debug("on_error callback failed: %s", cb_exc)

    # ------------------------------------------------------------------ public

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._engine.reset()
            self._dispatcher.reset()
            self._last_error = None
            self.stats = SessionStats()
            try:
                self._source.subscribe(self.on_frame)
                self._running = True
                with self._stop_lock:
                    self._live = True
                self._source.start()
            except Exception as exc:
                self._running = False
                with self._stop_lock:
                    self._live = False
                self._attempt("unsubscribe from video source", self._source.unsubscribe)
                self._attempt("stop video source", self._source.stop)
                self._event_log.log(f"ERROR: Failed to start camera: {exc}")
                self._set_status("Error starting camera.")
                raise
        self._event_log.log("INFO: Camera started. Detecting motion.")
        self._set_status("Camera started. Detecting motion...")

    def on_frame(self, frame: Frame) -> None:
        with self._lock:
            self.stats.frames_in += 1
            if not self._running:
                self.stats.frames_ignored += 1
                return
            self._cycle_thread = threading.get_ident()
            try:
                owned = self._clone(frame)
                res = self._engine.step(owned)
                outcome = self._dispatcher.handle(res, owned.img)
            except Exception as exc:
                self._fail(exc)
                return
            finally:
                self._cycle_thread = None

            self.stats.frames_processed += 1
            if res.degraded:
                self.stats.degraded_cycles += 1
            item = PresentedFrame(
                frame=res.annotated,
                frame_id=res.frame_id,
                ts_ms=res.ts_ms,
                motion_detected=res.motion_detected,
                blobs=tuple(res.blobs),
                status=outcome.status,
            )
            try:
                self._presentation.publish(item)
            except Exception as exc:
                self._log.warning("Presentation publish failed: %s", exc)

    def stop(self) -> None:
        """Stop delivery, drain the in-flight cycle, then release resources.

        Every release step is attempted even if an earlier one fails. Only
        one caller performs the release; a concurrent caller waits for it to
        finish unless it is that caller or the thread running the cycle.
        """
        self._running = False
        me = threading.get_ident()
        with self._stop_lock:
            if not self._live:
                owner = False
            else:
                self._live = False
                self._released.clear()
                self._stopping_thread = me
                owner = True
        if not owner:
            if me not in (self._stopping_thread, self._cycle_thread):
                self._released.wait()
            return
        try:
            # Joins the producer thread (unless we are on it).
            self._attempt("stop video source", self._source.stop)
            with self._lock:
                self._attempt("unsubscribe from video source", self._source.unsubscribe)
                self._attempt("release background model", self._engine.release)
                self._attempt("clear presentation", self._presentation.clear)
            self._event_log.log("INFO: Camera stopped. Resources disposed and reset.")
            self._set_status("Camera stopped. Ready.")
        finally:
            self._stopping_thread = None
            self._released.set()

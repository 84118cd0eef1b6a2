from __future__ import annotations

import contextlib
import logging
import threading
import time
from typing import Callable, Optional, Protocol

import cv2
import numpy as np

from common.frame import Frame
from common.time import now_ms

_LOG = logging.getLogger(__name__)

FrameCallback = Callable[[Frame], None]


class FrameSource(Protocol):
    def subscribe(self, callback: FrameCallback) -> None: ...
    def unsubscribe(self) -> None: ...
    def start(self) -> None: ...
    def stop(self) -> None: ...


class ThreadedSource:
    """
    Base for sources that deliver frames from their own producer thread.

    Subclasses implement ``_open`` / ``_grab`` / ``_close``. The subscribed
    callback runs on the producer thread; the callee owns the frame it is
    given only until the callback returns.
    """

    thread_name = "frame-source"

    def __init__(self, stop_timeout_s: float = 2.0) -> None:
        self._callback: Optional[FrameCallback] = None
        self._cb_lock = threading.Lock()
        self._run_ev = threading.Event()
        self._thr: Optional[threading.Thread] = None
        self._stop_timeout_s = stop_timeout_s
        self._frame_id = 0

    # ------------------------------------------------------------------ hooks

    def _open(self) -> None:
        pass

    def _grab(self) -> Optional[np.ndarray]:
        raise NotImplementedError

    def _close(self) -> None:
        pass

    # ------------------------------------------------------------------ loop

    def _loop(self) -> None:
        try:
            while self._run_ev.is_set():
                img = self._grab()
                if img is None:
                    # yield a tick to avoid hot spinning
                    time.sleep(0.001)
                    continue
                with self._cb_lock:
                    cb = self._callback
                if cb is None:
                    continue
                frame = Frame(img=img, ts_ms=now_ms(), frame_id=self._frame_id)
                self._frame_id += 1
                try:
                    cb(frame)
                except Exception:
                    _LOG.exception("Frame callback raised on frame %d", frame.frame_id)
        finally:
            with contextlib.suppress(Exception):
                self._close()

    # ------------------------------------------------------------------ public

    @property
    def running(self) -> bool:
        return self._thr is not None and self._thr.is_alive()

    def subscribe(self, callback: FrameCallback) -> None:
        with self._cb_lock:
            self._callback = callback

    def unsubscribe(self) -> None:
        with self._cb_lock:
            self._callback = None

    def start(self) -> None:
        if self.running:
            return
        self._open()
        self._frame_id = 0
        self._run_ev.set()
        self._thr = threading.Thread(target=self._loop, name=self.thread_name, daemon=True)
        self._thr.start()

    def stop(self) -> None:
        """Signal the producer and wait (bounded) for its current frame.

        Safe to call from inside the callback: the producer thread never
        joins itself.
        """
        self._run_ev.clear()
        thr = self._thr
        if thr is None:
            return
        if thr is not threading.current_thread():
            thr.join(timeout=self._stop_timeout_s)
            if thr.is_alive():
                _LOG.warning("%s did not stop within %.2fs", self.thread_name, self._stop_timeout_s)
        self._thr = None


class CameraSource(ThreadedSource):
    """OpenCV capture device (``cv2.VideoCapture``) as a frame source."""

    thread_name = "camera-source"

    def __init__(
        self,
        device: int | str = 0,
        width: Optional[int] = None,
        height: Optional[int] = None,
        stop_timeout_s: float = 2.0,
    ) -> None:
        super().__init__(stop_timeout_s=stop_timeout_s)
        self._device = device
        self._width = width
        self._height = height
        self._cap: Optional[cv2.VideoCapture] = None

    def _open(self) -> None:
        cap = cv2.VideoCapture(self._device)
        if not cap.isOpened():
            cap.release()
            raise RuntimeError(f"could not open video device {self._device!r}")
        if self._width:
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, int(self._width))
        if self._height:
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, int(self._height))
        self._cap = cap

    def _grab(self) -> Optional[np.ndarray]:
        if self._cap is None:
            return None
        ok, img = self._cap.read()
        return img if ok else None

    def _close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None


class NullSource(ThreadedSource):
    """A tiny source that synthesizes black frames. Useful for tests/dev."""

    thread_name = "null-source"

    def __init__(self, width: int = 640, height: int = 480, fps: float = 15.0) -> None:
        super().__init__()
        self.width, self.height, self.fps = width, height, fps
        self._next_ts = 0.0

    def _open(self) -> None:
        self._next_ts = time.time() * 1000.0

    def _grab(self) -> Optional[np.ndarray]:
        now = time.time() * 1000.0
        if now < self._next_ts:
            return None
        self._next_ts += 1000.0 / max(self.fps, 0.001)
        return np.zeros((self.height, self.width, 3), dtype=np.uint8)

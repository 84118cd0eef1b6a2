from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional, Protocol, Tuple

import numpy as np

from common.geometry import Rect


@dataclass(frozen=True)
class PresentedFrame:
    """Fully-formed per-cycle output handed to the presentation side."""

    frame: np.ndarray  # annotated BGR image, owned by this snapshot
    frame_id: int
    ts_ms: float
    motion_detected: bool
    blobs: Tuple[Rect, ...] = ()
    status: Optional[str] = None  # None = status unchanged this cycle


class PresentationSink(Protocol):
    def publish(self, item: PresentedFrame) -> None: ...
    def set_status(self, text: str) -> None: ...
    def clear(self) -> None: ...


class LatestFrameSlot:
    """Single-writer, many-reader slot holding the latest presented frame.

    The pipeline thread publishes a complete :class:`PresentedFrame` once per
    cycle; readers (a display loop on the main thread) only ever see whole
    snapshots.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._item: Optional[PresentedFrame] = None
        self._status: Optional[str] = None
        self._version = 0

    def publish(self, item: PresentedFrame) -> None:
        with self._lock:
            self._item = item
            if item.status is not None:
                self._status = item.status
            self._version += 1

    def set_status(self, text: str) -> None:
        with self._lock:
            self._status = text

    def clear(self) -> None:
        with self._lock:
            self._item = None

    def latest(self) -> Optional[PresentedFrame]:
        with self._lock:
            return self._item

    @property
    def status(self) -> Optional[str]:
        with self._lock:
            return self._status

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

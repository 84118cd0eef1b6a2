from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from common.geometry import Rect

from .errors import PipelineErrorKind


@dataclass(frozen=True)
class BlobBounds:
    """Inclusive width/height bounds a blob must satisfy to count as motion.

    Smaller blobs are sensor noise; larger ones are usually a global
    lighting change rather than something moving.
    """

    min_width: int = 20
    min_height: int = 20
    max_width: int = 500
    max_height: int = 500

    def accepts(self, rect: Rect) -> bool:
        return (
            self.min_width <= rect.width <= self.max_width
            and self.min_height <= rect.height <= self.max_height
        )


@dataclass
class MotionConfig:
    """
    Configuration knobs for the frame-differencing motion engine.

    Consumed as an immutable input for the lifetime of a capture session.
    """

    # Absolute gray-level difference a pixel must exceed to count as motion
    threshold: int = 15

    blob_bounds: BlobBounds = field(default_factory=BlobBounds)

    # Optional region of interest; None means the whole frame
    roi: Optional[Rect] = None

    # Overlay drawing (BGR colours)
    draw_roi: bool = True
    blob_color: Tuple[int, int, int] = (0, 255, 0)
    roi_color: Tuple[int, int, int] = (0, 0, 255)
    line_thickness: int = 2


@dataclass
class MotionResult:
    """
    Per-frame output of the motion engine.

    ``annotated`` is an owned copy of the input frame with blob rectangles
    (and the ROI outline, if configured) drawn on it.
    """

    motion_detected: bool
    ts_ms: float
    frame_id: int
    annotated: np.ndarray
    blobs: List[Rect] = field(default_factory=list)

    # Telemetry (best-effort)
    raw_blob_count: int = 0
    roi_applied: bool = False
    has_reference: bool = True  # False on the first frame of a session
    degraded: Tuple[PipelineErrorKind, ...] = ()  # every fallback taken this cycle

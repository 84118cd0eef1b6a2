"""Frame-differencing motion engine.

Consumes `common.frame.Frame` objects (BGR image, ts_ms, frame_id) and
produces `MotionResult` instances. Each call to :meth:`MotionEngine.step`
runs the full per-frame pipeline:

- BT.709 grayscale conversion
- absolute difference against the single stored previous frame
- fixed-cutoff thresholding
- optional ROI crop (with full-frame fallback)
- 8-connected blob extraction and size filtering
- overlay drawing onto an owned copy of the input frame

Higher-level semantics (motion lifecycle, cooldowns, snapshots, logging)
are downstream consumers of `MotionResult`.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import cv2
import numpy as np

from common.frame import Frame
from common.geometry import Rect

from .background import BackgroundModel, threshold_mask, to_grayscale
from .blobs import extract_blobs, filter_blobs
from .errors import InvalidFrameError, PipelineErrorKind
from .model import MotionConfig, MotionResult
from .roi import crop_to_roi

_LOG = logging.getLogger(__name__)


class MotionEngine:
    """Stateful engine owning the background model for one capture session.

    Not thread-safe by itself: the capture session serializes calls to
    :meth:`step` and :meth:`reset`.
    """

    def __init__(self, config: Optional[MotionConfig] = None) -> None:
        self._cfg = config or MotionConfig()
        self._background = BackgroundModel()

    @property
    def config(self) -> MotionConfig:
        return self._cfg

    @property
    def has_reference(self) -> bool:
        return self._background.has_reference

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _annotatable_copy(self, img: np.ndarray) -> np.ndarray:
        # Never draw on the source's buffer.
        if img.ndim == 2:
            return cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
        if img.shape[2] == 4:
            return cv2.cvtColor(img, cv2.COLOR_BGRA2BGR)
        return img.copy()

    def _draw(self, canvas: np.ndarray, blobs: List[Rect]) -> None:
        cfg = self._cfg
        for b in blobs:
            cv2.rectangle(
                canvas,
                (b.x, b.y),
                (b.right, b.bottom),
                cfg.blob_color,
                cfg.line_thickness,
            )
        if cfg.roi is not None and cfg.draw_roi:
            r = cfg.roi
            cv2.rectangle(canvas, (r.x, r.y), (r.right, r.bottom), cfg.roi_color, cfg.line_thickness)

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def step(self, frame: Frame) -> MotionResult:
        """Process a single frame and return a `MotionResult`.

        Raises
        ------
        InvalidFrameError
            If the frame or its image is missing or malformed.
        GeometryMismatchError
            If the frame size differs from the previous frame's.
        """
        if frame is None or getattr(frame, "img", None) is None:
            raise InvalidFrameError("frame image is missing")

        img = np.asarray(frame.img)
        gray = to_grayscale(img)
        annotated = self._annotatable_copy(img)

        diff = self._background.difference(gray)
        if diff is None:
            # First frame of the session: nothing to compare against.
            self._draw(annotated, [])
            return MotionResult(
                motion_detected=False,
                ts_ms=float(frame.ts_ms),
                frame_id=int(frame.frame_id),
                annotated=annotated,
                has_reference=False,
            )

        mask = threshold_mask(diff, self._cfg.threshold)
        crop = crop_to_roi(mask, self._cfg.roi)
        degraded: List[PipelineErrorKind] = []
        if crop.degraded:
            degraded.append(PipelineErrorKind.ROI_INVALID)

        try:
            raw = extract_blobs(crop.mask, crop.offset)
        except cv2.error as exc:
            _LOG.debug("Blob extraction failed on frame %d: %s", frame.frame_id, exc)
            raw = []
            degraded.append(PipelineErrorKind.FILTER_FAILURE)

        blobs = filter_blobs(raw, self._cfg.blob_bounds)
        self._draw(annotated, blobs)

        return MotionResult(
            motion_detected=len(blobs) > 0,
            ts_ms=float(frame.ts_ms),
            frame_id=int(frame.frame_id),
            annotated=annotated,
            blobs=blobs,
            raw_blob_count=len(raw),
            roi_applied=crop.roi_applied,
            degraded=tuple(degraded),
        )

    def reset(self) -> None:
        """Drop the stored background frame (start of a new session)."""
        self._background.reset()

    def release(self) -> None:
        self._background.release()

"""Grayscale conversion, single-frame background model and thresholding."""

from __future__ import annotations

from typing import Optional

import cv2
import numpy as np

from .errors import GeometryMismatchError, InvalidFrameError

# BT.709 luma weights in BGR channel order.
_BT709_BGR = np.array([0.0721, 0.7154, 0.2125], dtype=np.float32)


def to_grayscale(img: np.ndarray) -> np.ndarray:
    """Convert a BGR (or BGRA) frame to uint8 intensity with BT.709 weights.

    Single-channel input is returned as a copy. Values are truncated, not
    rounded, so the transform is fixed and stateless.
    """
    if img is None:
        raise InvalidFrameError("frame image is missing")
    arr = np.asarray(img)
    if arr.ndim == 2:
        return arr.astype(np.uint8, copy=True)
    if arr.ndim == 3 and arr.shape[2] == 1:
        return arr[:, :, 0].astype(np.uint8, copy=True)
    if arr.ndim != 3 or arr.shape[2] not in (3, 4):
        raise InvalidFrameError(f"unsupported frame shape {arr.shape}")
    luma = arr[:, :, :3].astype(np.float32) @ _BT709_BGR
    return np.clip(luma, 0, 255).astype(np.uint8)


def threshold_mask(diff: np.ndarray, threshold: int) -> np.ndarray:
    """Binary mask: 255 where ``diff > threshold``, else 0."""
    _, mask = cv2.threshold(diff, int(threshold), 255, cv2.THRESH_BINARY)
    return mask


class BackgroundModel:
    """Holds exactly one previous gray frame as the differencing baseline.

    Only the frame-processing path touches this object; the capture session
    serializes calls into it.
    """

    def __init__(self) -> None:
        self._prev: Optional[np.ndarray] = None

    @property
    def has_reference(self) -> bool:
        return self._prev is not None

    def difference(self, gray: np.ndarray) -> Optional[np.ndarray]:
        """Return ``|gray - prev|`` and re-anchor on ``gray``.

        Returns None when there is no previous frame yet. Raises
        :class:`GeometryMismatchError` if the sizes differ; the stored frame
        is left untouched in that case.
        """
        prev = self._prev
        if prev is None:
            self._prev = gray
            return None
        if prev.shape != gray.shape:
            raise GeometryMismatchError(
                f"frame geometry changed: previous {prev.shape}, current {gray.shape}"
            )
        diff = cv2.absdiff(gray, prev)
        self._prev = gray
        return diff

    def reset(self) -> None:
        self._prev = None

    # Explicit name used on session shutdown
    release = reset

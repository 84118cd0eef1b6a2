from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from common.geometry import Rect


@dataclass
class RoiCrop:
    mask: np.ndarray
    offset: Tuple[int, int] = (0, 0)
    roi_applied: bool = False
    degraded: bool = False  # configured ROI did not fit; full frame used


def roi_is_valid(roi: Rect, width: int, height: int) -> bool:
    return roi.area > 0 and roi.fits_within(width, height)


def crop_to_roi(mask: np.ndarray, roi: Optional[Rect]) -> RoiCrop:
    """Restrict ``mask`` to ``roi``.

    An absent ROI means the whole mask. An ROI that does not fit the mask
    (or has zero area) falls back to the whole mask for this call only and
    is flagged as ``degraded``; the caller reports it.
    """
    if roi is None:
        return RoiCrop(mask=mask)

    h, w = mask.shape[:2]
    if not roi_is_valid(roi, w, h):
        return RoiCrop(mask=mask, degraded=True)

    cropped = mask[roi.y : roi.bottom, roi.x : roi.right]
    return RoiCrop(mask=cropped, offset=(roi.x, roi.y), roi_applied=True)

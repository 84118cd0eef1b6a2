from __future__ import annotations

from typing import Iterable, List, Tuple

import cv2
import numpy as np

from common.geometry import Rect

from .model import BlobBounds


def extract_blobs(mask: np.ndarray, offset: Tuple[int, int] = (0, 0)) -> List[Rect]:
    """
    Bounding rectangles of the 8-connected regions of non-zero pixels.

    Rectangles are translated by ``offset`` so they land in full-frame
    coordinates when ``mask`` is an ROI crop. Order follows component labels
    (top-left first); callers should not depend on it.
    """
    if mask.size == 0:
        return []
    binary = np.ascontiguousarray((mask > 0).astype(np.uint8))
    num, _labels, stats, _ = cv2.connectedComponentsWithStats(binary, connectivity=8)
    dx, dy = int(offset[0]), int(offset[1])
    out: List[Rect] = []
    for i in range(1, num):  # label 0 is the background
        x, y, w, h, _area = stats[i]
        out.append(Rect(int(x), int(y), int(w), int(h)).translated(dx, dy))
    return out


def filter_blobs(blobs: Iterable[Rect], bounds: BlobBounds) -> List[Rect]:
    return [b for b in blobs if bounds.accepts(b)]

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass
class Frame:
    img: np.ndarray  # BGR (H,W,3) or intensity (H,W), uint8
    ts_ms: float  # epoch ms (float), stamped by the frame source
    frame_id: int

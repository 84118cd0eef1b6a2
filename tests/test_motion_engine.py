from __future__ import annotations

import cv2
import numpy as np
import pytest
from conftest import blank, with_square

from analysis.motion import (
    GeometryMismatchError,
    InvalidFrameError,
    MotionConfig,
    MotionEngine,
    MotionResult,
    PipelineErrorKind,
)
from common.frame import Frame
from common.geometry import Rect


def _frame(img: np.ndarray, t_ms: float, fid: int = 0) -> Frame:
    return Frame(img=img, ts_ms=t_ms, frame_id=fid)


def test_first_frame_never_reports_motion():
    eng = MotionEngine(MotionConfig())
    # Busy content on the very first frame still cannot be motion.
    res = eng.step(_frame(with_square(100, 100, 80), 0.0))

    assert isinstance(res, MotionResult)
    assert res.motion_detected is False
    assert res.has_reference is False
    assert res.blobs == []


def test_square_appearing_is_detected_with_bbox():
    eng = MotionEngine(MotionConfig())
    eng.step(_frame(blank(), 0.0, 0))
    res = eng.step(_frame(with_square(100, 120, 40), 100.0, 1))

    assert res.motion_detected
    assert res.blobs == [Rect(100, 120, 40, 40)]
    assert res.ts_ms == 100.0 and res.frame_id == 1


def test_identical_frames_have_no_motion():
    eng = MotionEngine(MotionConfig())
    eng.step(_frame(with_square(10, 10, 50), 0.0))
    res = eng.step(_frame(with_square(10, 10, 50), 100.0))
    assert not res.motion_detected


def test_small_and_huge_changes_are_filtered():
    eng = MotionEngine(MotionConfig())
    eng.step(_frame(blank(), 0.0))
    # 10x10 is below the 20x20 minimum
    assert not eng.step(_frame(with_square(0, 0, 10), 100.0)).motion_detected

    eng.reset()
    eng.step(_frame(blank(), 0.0))
    # Whole-frame brightness jump is wider than 500 px
    lit = np.full((480, 640, 3), 200, dtype=np.uint8)
    res = eng.step(_frame(lit, 100.0))
    assert res.raw_blob_count == 1
    assert not res.motion_detected


def test_sub_threshold_change_is_ignored():
    eng = MotionEngine(MotionConfig(threshold=15))
    eng.step(_frame(blank(), 0.0))
    img = blank()
    img[100:160, 100:160] = 15  # gray diff <= 15 on every channel mix
    assert not eng.step(_frame(img, 100.0)).motion_detected


def test_roi_restricts_search_and_translates_blobs():
    cfg = MotionConfig(roi=Rect(300, 200, 200, 200))
    eng = MotionEngine(cfg)
    eng.step(_frame(blank(), 0.0))

    img = with_square(50, 50, 40)  # outside the ROI
    img[250:290, 330:370] = 255  # inside the ROI
    res = eng.step(_frame(img, 100.0))

    assert res.roi_applied
    assert res.degraded == ()
    assert res.blobs == [Rect(330, 250, 40, 40)]


def test_out_of_bounds_roi_degrades_to_full_frame():
    cfg = MotionConfig(roi=Rect(700, 0, 100, 100))
    eng = MotionEngine(cfg)
    eng.step(_frame(blank(640, 480), 0.0))
    res = eng.step(_frame(with_square(100, 100, 40), 100.0))

    assert res.degraded == (PipelineErrorKind.ROI_INVALID,)
    assert not res.roi_applied
    assert res.blobs == [Rect(100, 100, 40, 40)]
    assert cfg.roi == Rect(700, 0, 100, 100)


def test_annotations_are_drawn_on_a_copy():
    eng = MotionEngine(MotionConfig(roi=Rect(0, 0, 640, 480)))
    src0 = blank()
    eng.step(_frame(src0, 0.0))
    src1 = with_square(200, 200, 50)
    before = src1.copy()
    res = eng.step(_frame(src1, 100.0))

    assert np.array_equal(src1, before)
    assert res.annotated is not src1
    # green box edge on the blob, red ROI outline on the border
    assert tuple(res.annotated[200, 225]) == (0, 255, 0)
    assert tuple(res.annotated[0, 320]) == (0, 0, 255)


def test_grayscale_input_is_annotated_in_colour():
    eng = MotionEngine(MotionConfig())
    res = eng.step(_frame(np.zeros((48, 64), dtype=np.uint8), 0.0))
    assert res.annotated.shape == (48, 64, 3)


def test_geometry_change_raises():
    eng = MotionEngine(MotionConfig())
    eng.step(_frame(blank(640, 480), 0.0))
    with pytest.raises(GeometryMismatchError):
        eng.step(_frame(blank(320, 240), 100.0))


def test_missing_image_raises():
    eng = MotionEngine(MotionConfig())
    with pytest.raises(InvalidFrameError):
        eng.step(Frame(img=None, ts_ms=0.0, frame_id=0))  # type: ignore[arg-type]


def test_reset_makes_next_frame_a_first_frame():
    eng = MotionEngine(MotionConfig())
    eng.step(_frame(blank(), 0.0))
    eng.reset()
    res = eng.step(_frame(with_square(100, 100, 40), 100.0))
    assert not res.motion_detected
    assert not res.has_reference


def test_roi_fallback_and_extraction_failure_are_both_reported(monkeypatch):
    def _broken(mask, offset=(0, 0)):
        raise cv2.error("connectedComponentsWithStats failed")

    monkeypatch.setattr("analysis.motion.engine.extract_blobs", _broken)
    eng = MotionEngine(MotionConfig(roi=Rect(700, 0, 100, 100)))
    eng.step(_frame(blank(640, 480), 0.0))
    res = eng.step(_frame(with_square(100, 100, 40), 100.0))

    assert res.degraded == (PipelineErrorKind.ROI_INVALID, PipelineErrorKind.FILTER_FAILURE)
    assert res.motion_detected is False
    assert res.blobs == []

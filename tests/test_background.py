from __future__ import annotations

import numpy as np
import pytest

from analysis.motion import BackgroundModel, GeometryMismatchError, InvalidFrameError, threshold_mask, to_grayscale


def test_grayscale_uses_bt709_weights_on_bgr():
    img = np.zeros((1, 3, 3), dtype=np.uint8)
    img[0, 0] = (0, 0, 255)  # pure red
    img[0, 1] = (0, 255, 0)  # pure green
    img[0, 2] = (255, 0, 0)  # pure blue

    gray = to_grayscale(img)

    assert gray.shape == (1, 3)
    assert gray.dtype == np.uint8
    # 0.2125*255, 0.7154*255, 0.0721*255, truncated
    assert gray.tolist() == [[54, 182, 18]]


def test_grayscale_passes_single_channel_through_as_copy():
    img = np.full((4, 4), 77, dtype=np.uint8)
    gray = to_grayscale(img)
    assert np.array_equal(gray, img)
    gray[0, 0] = 0
    assert img[0, 0] == 77


def test_grayscale_rejects_unsupported_shapes():
    with pytest.raises(InvalidFrameError):
        to_grayscale(np.zeros((4, 4, 2), dtype=np.uint8))
    with pytest.raises(InvalidFrameError):
        to_grayscale(None)  # type: ignore[arg-type]


def test_first_frame_has_no_difference_and_becomes_reference():
    bg = BackgroundModel()
    assert not bg.has_reference

    g0 = np.full((8, 8), 100, dtype=np.uint8)
    assert bg.difference(g0) is None
    assert bg.has_reference


def test_difference_is_absolute_and_reanchors():
    bg = BackgroundModel()
    bg.difference(np.full((2, 2), 100, dtype=np.uint8))

    diff = bg.difference(np.full((2, 2), 40, dtype=np.uint8))
    assert diff is not None
    assert diff.tolist() == [[60, 60], [60, 60]]

    # Compared against the frame just seen, not the first one.
    diff2 = bg.difference(np.full((2, 2), 50, dtype=np.uint8))
    assert diff2.tolist() == [[10, 10], [10, 10]]


def test_geometry_mismatch_fails_fast_and_keeps_reference():
    bg = BackgroundModel()
    bg.difference(np.zeros((4, 4), dtype=np.uint8))

    with pytest.raises(GeometryMismatchError):
        bg.difference(np.zeros((4, 5), dtype=np.uint8))

    # The stored frame is still the 4x4 one.
    assert bg.difference(np.zeros((4, 4), dtype=np.uint8)) is not None


def test_release_drops_reference():
    bg = BackgroundModel()
    bg.difference(np.zeros((4, 4), dtype=np.uint8))
    bg.release()
    assert not bg.has_reference


def test_threshold_is_strictly_greater_than_cutoff():
    diff = np.array([[14, 15, 16, 255]], dtype=np.uint8)
    mask = threshold_mask(diff, 15)
    assert mask.tolist() == [[0, 0, 255, 255]]

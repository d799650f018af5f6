from __future__ import annotations

from pathlib import Path
import sys

import cv2
import numpy as np
import pytest

repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from facenorm.face.illumination import Illuminator, blend_halves


def _two_tone_face(h: int = 40, w: int = 64) -> np.ndarray:
    """Dark left half, bright right half; values only change down the rows."""
    ys = np.arange(h, dtype=np.int32).reshape(-1, 1)
    img = np.empty((h, w), dtype=np.uint8)
    img[:, : w // 2] = np.repeat(4 * ys, w // 2, axis=1)
    img[:, w // 2 :] = np.repeat(100 + 2 * ys, w - w // 2, axis=1)
    return img


def test_blend_is_continuous_at_quarter_width():
    img = _two_tone_face()
    w = img.shape[1]
    out = blend_halves(img)
    q = w // 4
    diff = np.abs(out[:, q - 1].astype(int) - out[:, q].astype(int))
    assert int(diff.max()) <= 1


def test_blend_outer_quarters_use_half_equalization():
    img = _two_tone_face()
    w = img.shape[1]
    mid = w // 2
    out = blend_halves(img)
    left_eq = cv2.equalizeHist(np.ascontiguousarray(img[:, :mid]))
    right_eq = cv2.equalizeHist(np.ascontiguousarray(img[:, mid:]))
    assert np.array_equal(out[:, 0], left_eq[:, 0])
    assert np.array_equal(out[:, w - 1], right_eq[:, -1])


def test_blend_middle_column_is_whole_face_equalization():
    img = np.random.default_rng(1).integers(0, 256, size=(30, 40), dtype=np.uint8)
    out = blend_halves(img)
    whole = cv2.equalizeHist(img)
    # At x = W/2 the right-hand blend starts with weight 0 on the right half.
    assert np.array_equal(out[:, 20], whole[:, 20])


@pytest.mark.parametrize("shape", [(320, 320), (31, 17), (10, 3)])
def test_normalize_lighting_keeps_size(shape):
    img = np.random.default_rng(2).integers(0, 256, size=shape, dtype=np.uint8)
    out = Illuminator().normalize_lighting(img)
    assert out.shape == shape
    assert out.dtype == np.uint8


def test_normalize_lighting_accepts_color():
    img = np.random.default_rng(3).integers(0, 256, size=(24, 24, 3), dtype=np.uint8)
    out = Illuminator().normalize_lighting(img)
    assert out.shape == (24, 24)

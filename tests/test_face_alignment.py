from __future__ import annotations

from pathlib import Path
import sys

import numpy as np
import pytest

repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from facenorm.face.aligner import Aligner, AlignmentConfig, compute_eye_transform
from facenorm.face.types import Point


class _FixedEyes:
    """EyeLocator stand-in returning preset eye centers."""

    def __init__(self, left, right):
        self.left = left
        self.right = right

    def locate_both(self, face):
        return self.left, self.right


def _apply(m: np.ndarray, p: Point):
    v = m @ np.array([p.x, p.y, 1.0])
    return float(v[0]), float(v[1])


def test_worked_example_scale_and_angle():
    cfg = AlignmentConfig(face_width=320, face_height=320, desired_left_eye_x=0.16, desired_right_eye_x=0.84)
    tf = compute_eye_transform(Point(10, 20), Point(30, 20), cfg)
    assert tf is not None
    assert tf.angle == pytest.approx(0.0)
    assert tf.scale == pytest.approx(10.88)
    assert tf.eyes_center == Point(20.0, 20.0)

    eye_line = cfg.desired_left_eye_y * cfg.face_height
    lx, ly = _apply(tf.matrix, Point(10, 20))
    rx, ry = _apply(tf.matrix, Point(30, 20))
    assert lx == pytest.approx(0.16 * 320)
    assert rx == pytest.approx(0.84 * 320)
    assert ly == pytest.approx(eye_line)
    assert ry == pytest.approx(eye_line)


def test_tilted_eyes_are_levelled():
    cfg = AlignmentConfig()
    left, right = Point(50, 60), Point(90, 100)
    tf = compute_eye_transform(left, right, cfg)
    assert tf.angle == pytest.approx(45.0)
    _, ly = _apply(tf.matrix, left)
    _, ry = _apply(tf.matrix, right)
    assert ly == pytest.approx(ry)
    assert ly == pytest.approx(cfg.face_height * cfg.desired_left_eye_y)


@pytest.mark.parametrize("shape", [(60, 40), (100, 100), (480, 360), (37, 91)])
def test_align_always_returns_canonical_size(shape):
    h, w = shape
    face = np.random.default_rng(0).integers(0, 255, size=(h, w), dtype=np.uint8)
    left = Point(w * 0.3, h * 0.35)
    right = Point(w * 0.7, h * 0.33)
    aligner = Aligner(_FixedEyes(left, right))
    out = aligner.align(face)
    assert out.shape == (320, 320)
    assert out.dtype == np.uint8


def test_coincident_eyes_fall_back_to_input():
    face = np.full((64, 64), 7, dtype=np.uint8)
    aligner = Aligner(_FixedEyes(Point(20, 20), Point(20, 20)))
    res = aligner.align_with_eyes(face)
    assert res.aligned is False
    assert res.image is face
    assert compute_eye_transform(Point(20, 20), Point(20, 20), AlignmentConfig()) is None


@pytest.mark.parametrize("left,right", [(None, Point(30, 20)), (Point(10, 20), None), (None, None)])
def test_missing_eye_falls_back_to_input(left, right):
    face = np.zeros((50, 50), dtype=np.uint8)
    res = Aligner(_FixedEyes(left, right)).align_with_eyes(face)
    assert res.aligned is False
    assert res.image is face


def test_outside_of_source_is_mid_gray():
    face = np.zeros((400, 400), dtype=np.uint8)
    aligner = Aligner(_FixedEyes(Point(100, 200), Point(300, 200)))
    out = aligner.align(face)
    assert out.shape == (320, 320)
    # Bottom rows map below the 400px source (scale 1.088 around the eye line).
    assert np.all(out[-1, :] == 128)
    # Pixels around the eyes come from the (black) source.
    assert out[45, 160] == 0


def test_color_face_keeps_channels():
    face = np.zeros((200, 200, 3), dtype=np.uint8)
    out = Aligner(_FixedEyes(Point(60, 80), Point(140, 80))).align(face)
    assert out.shape == (320, 320, 3)

"""Eye-based geometric alignment.

The face crop is rotated, uniformly scaled and translated so that the detected
eyes land on fixed positions of a canonical-size output image:

    angle   = atan2(dy, dx)                     (degrees)
    scale   = (desired_right_x - desired_left_x) * face_width / eye_distance
    M       = rotation(eyes_center, angle, scale)
    M[:, 2] += (face_width * 0.5, face_height * desired_left_y) - eyes_center

Alignment is best effort: a missing eye or a degenerate eye distance returns
the input face unchanged.
"""

from __future__ import annotations

import math

from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

from facenorm.config import (
    DESIRED_FACE_HEIGHT,
    DESIRED_FACE_WIDTH,
    DESIRED_LEFT_EYE_X,
    DESIRED_LEFT_EYE_Y,
    DESIRED_RIGHT_EYE_X,
    MIN_EYE_DISTANCE,
    WARP_BORDER_VALUE,
)
from facenorm.face.eyes import EyeLocator
from facenorm.face.types import Point
from facenorm.utils.log import get_logger

logger = get_logger(__name__)


@dataclass
class AlignmentConfig:
    face_width: int = DESIRED_FACE_WIDTH
    face_height: int = DESIRED_FACE_HEIGHT
    desired_left_eye_x: float = DESIRED_LEFT_EYE_X
    desired_left_eye_y: float = DESIRED_LEFT_EYE_Y
    desired_right_eye_x: float = DESIRED_RIGHT_EYE_X
    border_value: int = WARP_BORDER_VALUE
    min_eye_distance: float = MIN_EYE_DISTANCE

    @property
    def canonical_size(self) -> Tuple[int, int]:
        """(width, height) of every aligned face."""
        return int(self.face_width), int(self.face_height)


@dataclass
class EyeTransform:
    matrix: np.ndarray  # (2, 3) float64
    angle: float  # degrees
    scale: float
    eyes_center: Point


@dataclass
class AlignmentResult:
    image: np.ndarray
    left_eye: Optional[Point]
    right_eye: Optional[Point]
    aligned: bool


def compute_eye_transform(left: Point, right: Point, config: AlignmentConfig) -> Optional[EyeTransform]:
    """Similarity transform mapping the eye pair onto the canonical eye line.

    Returns None when the eyes are (nearly) coincident.
    """
    dx = float(right.x) - float(left.x)
    dy = float(right.y) - float(left.y)
    distance = math.sqrt(dx * dx + dy * dy)
    if not math.isfinite(distance) or distance < float(config.min_eye_distance):
        return None

    angle = math.degrees(math.atan2(dy, dx))
    desired_distance = (float(config.desired_right_eye_x) - float(config.desired_left_eye_x)) * float(
        config.face_width
    )
    scale = desired_distance / distance

    center = Point((float(left.x) + float(right.x)) * 0.5, (float(left.y) + float(right.y)) * 0.5)
    m = cv2.getRotationMatrix2D((center.x, center.y), angle, scale).astype(np.float64)

    # Move the eyes' midpoint to the horizontal center, on the desired eye line.
    m[0, 2] += float(config.face_width) * 0.5 - center.x
    m[1, 2] += float(config.face_height) * float(config.desired_left_eye_y) - center.y
    return EyeTransform(matrix=m, angle=angle, scale=scale, eyes_center=center)


def warp_to_canonical(face: np.ndarray, matrix: np.ndarray, config: AlignmentConfig) -> np.ndarray:
    border = config.border_value
    if face.ndim == 3:
        border = (border,) * int(face.shape[2])
    return cv2.warpAffine(
        face,
        np.asarray(matrix, dtype=np.float64),
        config.canonical_size,
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=border,
    )


class Aligner:
    def __init__(self, eye_locator: EyeLocator, config: Optional[AlignmentConfig] = None):
        self.eye_locator = eye_locator
        self.config = config or AlignmentConfig()

    def align_with_eyes(self, face: np.ndarray) -> AlignmentResult:
        left, right = self.eye_locator.locate_both(face)
        if left is None or right is None:
            logger.warning("One or both eyes were not detected, face left unaligned")
            return AlignmentResult(image=face, left_eye=left, right_eye=right, aligned=False)

        tf = compute_eye_transform(left, right, self.config)
        if tf is None:
            logger.warning(f"Degenerate eye distance ({left} / {right}), face left unaligned")
            return AlignmentResult(image=face, left_eye=left, right_eye=right, aligned=False)

        warped = warp_to_canonical(face, tf.matrix, self.config)
        return AlignmentResult(image=warped, left_eye=left, right_eye=right, aligned=True)

    def align(self, face: np.ndarray) -> np.ndarray:
        return self.align_with_eyes(face).image

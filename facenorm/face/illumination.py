from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from facenorm.config import BILATERAL_DIAMETER, BILATERAL_SIGMA_COLOR, BILATERAL_SIGMA_SPACE
from facenorm.face.preprocess import to_grayscale


@dataclass
class IlluminationConfig:
    bilateral_diameter: int = BILATERAL_DIAMETER
    bilateral_sigma_color: float = BILATERAL_SIGMA_COLOR
    bilateral_sigma_space: float = BILATERAL_SIGMA_SPACE


def _equalize(gray: np.ndarray) -> np.ndarray:
    return cv2.equalizeHist(np.ascontiguousarray(gray, dtype=np.uint8))


def blend_halves(face: np.ndarray) -> np.ndarray:
    """Split-histogram equalization with a seamless blend between the halves.

    Each half is equalized on its own and mixed with the whole-face
    equalization, column by column:

        [0, W/4)      left half
        [W/4, W/2)    left -> whole
        [W/2, 3W/4)   whole -> right
        [3W/4, W)     right half
    """
    gray = to_grayscale(face)
    h, w = gray.shape[:2]
    whole = _equalize(gray)
    if w < 2:
        return whole

    # Integer split agreeing with the float W/2 comparison below.
    mid = (w + 1) // 2
    left = np.zeros((h, w), dtype=np.float64)
    right = np.zeros((h, w), dtype=np.float64)
    left[:, :mid] = _equalize(gray[:, :mid])
    right[:, mid:] = _equalize(gray[:, mid:])
    whole_f = whole.astype(np.float64)

    q = w / 4.0
    xs = np.arange(w, dtype=np.float64)
    out = np.empty((h, w), dtype=np.float64)

    m1 = xs < q
    m2 = (xs >= q) & (xs < 2 * q)
    m3 = (xs >= 2 * q) & (xs < 3 * q)
    m4 = xs >= 3 * q

    out[:, m1] = left[:, m1]
    f = (xs[m2] - q) / q
    out[:, m2] = (1.0 - f) * left[:, m2] + f * whole_f[:, m2]
    f = (xs[m3] - 2 * q) / q
    out[:, m3] = (1.0 - f) * whole_f[:, m3] + f * right[:, m3]
    out[:, m4] = right[:, m4]

    # Round half up.
    return np.clip(np.floor(out + 0.5), 0, 255).astype(np.uint8)


class Illuminator:
    def __init__(self, config: Optional[IlluminationConfig] = None):
        self.config = config or IlluminationConfig()

    def normalize_lighting(self, face: np.ndarray) -> np.ndarray:
        """Return a single-channel face of the same size with balanced lighting."""
        blended = blend_halves(face)
        c = self.config
        return cv2.bilateralFilter(
            blended,
            int(c.bilateral_diameter),
            float(c.bilateral_sigma_color),
            float(c.bilateral_sigma_space),
        )

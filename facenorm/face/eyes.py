from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from facenorm.config import (
    EYE_AREA_HEIGHT,
    EYE_AREA_WIDTH,
    EYE_MIN_NEIGHBORS,
    EYE_SCALE_FACTOR,
    LEFT_EYE_AREA_X,
    LEFT_EYE_AREA_Y,
    MIN_EYE_SIZE,
    RIGHT_EYE_AREA_X,
    RIGHT_EYE_AREA_Y,
)
from facenorm.face.detector import detect_objects, pick_largest
from facenorm.face.types import Point, Rect, Size
from facenorm.utils.log import get_logger

logger = get_logger(__name__)


class EyeSide(str, Enum):
    LEFT = "left"
    RIGHT = "right"


@dataclass
class EyeConfig:
    area_width: float = EYE_AREA_WIDTH
    area_height: float = EYE_AREA_HEIGHT
    left_x: float = LEFT_EYE_AREA_X
    left_y: float = LEFT_EYE_AREA_Y
    right_x: float = RIGHT_EYE_AREA_X
    right_y: float = RIGHT_EYE_AREA_Y
    scale_factor: float = EYE_SCALE_FACTOR
    min_neighbors: int = EYE_MIN_NEIGHBORS
    min_size: Size = MIN_EYE_SIZE


class EyeLocator:
    """Finds eye centers inside fixed fractional sub-regions of a face crop.

    The left/right classifiers may be the same cascade; passing a dedicated
    right-eye cascade lets each side use a specialized model.
    """

    def __init__(self, left_classifier, right_classifier=None, config: Optional[EyeConfig] = None):
        self.left_classifier = left_classifier
        self.right_classifier = right_classifier if right_classifier is not None else left_classifier
        self.config = config or EyeConfig()

    def eye_region(self, face: np.ndarray, side: EyeSide) -> Rect:
        h, w = face.shape[:2]
        c = self.config
        fx, fy = (c.left_x, c.left_y) if EyeSide(side) is EyeSide.LEFT else (c.right_x, c.right_y)
        # Truncate like integer pixel rects do, then keep the region inside the face.
        region = Rect(int(fx * w), int(fy * h), max(1, int(c.area_width * w)), max(1, int(c.area_height * h)))
        clipped = region.clip(w, h)
        return clipped if clipped is not None else Rect(0, 0, w, h)

    def locate(self, face: np.ndarray, side: EyeSide) -> Optional[Point]:
        """Return the eye center in face-local coordinates, or None if no eye was found."""
        side = EyeSide(side)
        region = self.eye_region(face, side)
        sub = face[region.y : region.y + region.height, region.x : region.x + region.width]
        classifier = self.left_classifier if side is EyeSide.LEFT else self.right_classifier
        hits = detect_objects(
            classifier,
            sub,
            self.config.scale_factor,
            self.config.min_neighbors,
            self.config.min_size,
            (region.width, region.height),
        )
        best = pick_largest(hits)
        if best is None:
            logger.debug(f"No {side.value} eye detected")
            return None
        return best.center.translate(region.x, region.y)

    def locate_both(self, face: np.ndarray) -> Tuple[Optional[Point], Optional[Point]]:
        return self.locate(face, EyeSide.LEFT), self.locate(face, EyeSide.RIGHT)

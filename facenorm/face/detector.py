from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from facenorm.config import FACE_MIN_NEIGHBORS, FACE_SCALE_FACTOR, MAX_FACE_SIZE, MIN_FACE_SIZE
from facenorm.face.types import Rect, Size
from facenorm.utils.log import get_logger

logger = get_logger(__name__)


@dataclass
class DetectionConfig:
    scale_factor: float = FACE_SCALE_FACTOR
    min_neighbors: int = FACE_MIN_NEIGHBORS
    min_size: Size = MIN_FACE_SIZE
    max_size: Size = MAX_FACE_SIZE


def pick_largest(rectangles: Sequence[Rect]) -> Optional[Rect]:
    """Return the rectangle with the largest area.

    Ties keep the earliest rectangle: a later one only wins with a strictly
    larger area.
    """
    best: Optional[Rect] = None
    for r in rectangles:
        if best is None or r.area > best.area:
            best = r
    return best


def detect_objects(
    classifier,
    image: np.ndarray,
    scale_factor: float,
    min_neighbors: int,
    min_size: Size,
    max_size: Size,
) -> List[Rect]:
    """Run a cascade classifier and return hits as `Rect`s clipped to the image."""
    if image is None or image.size == 0:
        return []
    h, w = image.shape[:2]
    hits = classifier.detectMultiScale(
        image,
        scaleFactor=float(scale_factor),
        minNeighbors=int(min_neighbors),
        minSize=(int(min_size[0]), int(min_size[1])),
        maxSize=(int(max_size[0]), int(max_size[1])),
    )
    if hits is None or len(hits) == 0:
        return []
    out: List[Rect] = []
    for xywh in np.asarray(hits).reshape(-1, 4):
        r = Rect.from_xywh(xywh).clip(w, h)
        if r is not None:
            out.append(r)
    return out


class RegionDetector:
    """Face region detector on top of a cascade classifier."""

    def __init__(self, classifier, config: Optional[DetectionConfig] = None):
        self.classifier = classifier
        self.config = config or DetectionConfig()

    def detect(self, image: np.ndarray, min_size: Optional[Size] = None, max_size: Optional[Size] = None) -> List[Rect]:
        rects = detect_objects(
            self.classifier,
            image,
            self.config.scale_factor,
            self.config.min_neighbors,
            min_size or self.config.min_size,
            max_size or self.config.max_size,
        )
        logger.debug(f"Number of faces detected: {len(rects)}")
        return rects

    def detect_largest(self, image: np.ndarray) -> Optional[Rect]:
        return pick_largest(self.detect(image))

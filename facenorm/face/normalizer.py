from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

from facenorm.config import DOWNSCALED_IMAGE_WIDTH
from facenorm.face.aligner import Aligner, AlignmentConfig
from facenorm.face.detector import DetectionConfig, RegionDetector
from facenorm.face.eyes import EyeConfig, EyeLocator
from facenorm.face.illumination import IlluminationConfig, Illuminator
from facenorm.face.preprocess import crop, scale_image, to_grayscale
from facenorm.face.resources import DetectorBundle
from facenorm.face.types import Point, Rect
from facenorm.utils.log import get_logger

logger = get_logger(__name__)


@dataclass
class NormalizedFace:
    rect: Rect  # face region in the input image
    image: np.ndarray  # canonical single-channel face
    left_eye: Optional[Point]
    right_eye: Optional[Point]
    aligned: bool


class FaceNormalizer:
    """raw image -> face ROI -> crop -> eye alignment -> lighting -> canonical face.

    Holds no mutable state after construction, so one instance can serve
    several worker threads.
    """

    def __init__(
        self,
        bundle: DetectorBundle,
        detection: Optional[DetectionConfig] = None,
        eyes: Optional[EyeConfig] = None,
        alignment: Optional[AlignmentConfig] = None,
        illumination: Optional[IlluminationConfig] = None,
        working_width: Optional[int] = DOWNSCALED_IMAGE_WIDTH,
    ):
        self.detector = RegionDetector(bundle.face_classifier, detection)
        self.aligner = Aligner(EyeLocator(bundle.eye_classifier, config=eyes), alignment)
        self.illuminator = Illuminator(illumination)
        self.working_width = working_width

    @property
    def canonical_size(self) -> Tuple[int, int]:
        return self.aligner.config.canonical_size

    def _working_image(self, gray: np.ndarray) -> Tuple[np.ndarray, float]:
        w = gray.shape[1]
        if self.working_width and w > int(self.working_width):
            small = scale_image(gray, int(self.working_width))
            return small, float(w) / float(small.shape[1])
        return gray, 1.0

    def count_faces(self, image: np.ndarray) -> int:
        small, _ = self._working_image(to_grayscale(image))
        return len(self.detector.detect(small))

    def normalize(self, image: np.ndarray) -> Optional[NormalizedFace]:
        """Return the canonical face of the largest detected face, or None on a detection miss."""
        gray = to_grayscale(image)
        small, factor = self._working_image(gray)
        rect = self.detector.detect_largest(small)
        if rect is None:
            logger.info("No face detected")
            return None

        h, w = gray.shape[:2]
        rect = rect.scaled(factor).clip(w, h) if factor != 1.0 else rect
        face = crop(gray, rect) if rect is not None else None
        if face is None or face.size == 0:
            logger.warning("Detected face region is empty after mapping back to the input image")
            return None

        res = self.aligner.align_with_eyes(face)
        canonical = res.image
        if not res.aligned:
            # Unaligned faces still have to fit the corpus' fixed dimensions.
            canonical = cv2.resize(face, self.canonical_size, interpolation=cv2.INTER_LINEAR)

        normalized = self.illuminator.normalize_lighting(canonical)
        return NormalizedFace(
            rect=rect,
            image=normalized,
            left_eye=res.left_eye,
            right_eye=res.right_eye,
            aligned=res.aligned,
        )

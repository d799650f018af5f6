from __future__ import annotations

from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from facenorm.errors import ImageLoadError
from facenorm.face.types import Rect


def load_image(path) -> np.ndarray:
    """Read an image file as BGR (cv2.imread applies the EXIF orientation)."""
    p = Path(path)
    if not p.is_file():
        raise ImageLoadError(f"image not found: {p}")
    image = cv2.imread(str(p), cv2.IMREAD_COLOR)
    if image is None:
        raise ImageLoadError(f"failed to decode image: {p}")
    return image


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """BGR / BGRA / gray -> single-channel uint8."""
    arr = np.asarray(image)
    if arr.ndim == 2:
        gray = arr
    elif arr.ndim == 3 and arr.shape[2] == 1:
        gray = arr[:, :, 0]
    elif arr.ndim == 3 and arr.shape[2] == 3:
        gray = cv2.cvtColor(arr, cv2.COLOR_BGR2GRAY)
    elif arr.ndim == 3 and arr.shape[2] == 4:
        gray = cv2.cvtColor(arr, cv2.COLOR_BGRA2GRAY)
    else:
        raise ValueError(f"unsupported image shape: {arr.shape}")
    if gray.dtype != np.uint8:
        gray = np.clip(gray, 0, 255).astype(np.uint8)
    return np.ascontiguousarray(gray)


def scale_image(image: np.ndarray, desired_width: float) -> np.ndarray:
    """Resize to `desired_width`, keeping the aspect ratio."""
    h, w = image.shape[:2]
    new_w = max(1, int(round(float(desired_width))))
    new_h = max(1, int(round(new_w * float(h) / float(w))))
    interp = cv2.INTER_AREA if new_w < w else cv2.INTER_LINEAR
    return cv2.resize(image, (new_w, new_h), interpolation=interp)


def crop(image: np.ndarray, rect: Rect) -> Optional[np.ndarray]:
    h, w = image.shape[:2]
    r = rect.clip(w, h)
    if r is None:
        return None
    return image[r.y : r.y + r.height, r.x : r.x + r.width]

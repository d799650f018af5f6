import pickle

from pathlib import Path
from typing import Dict, Optional, Tuple

import numpy as np

from facenorm.config import MATRIX_FILE_SUFFIX, MATRIX_SCHEMA_VERSION
from facenorm.utils.log import get_logger

logger = get_logger(__name__)


class MatrixStore:
    """Directory of named 2D float matrices (`<key>.data`, row-major float64, uncompressed)."""

    def __init__(self, directory):
        self.directory = Path(directory)

    def path(self, key: str) -> Path:
        return self.directory / f"{key}{MATRIX_FILE_SUFFIX}"

    def exists(self, key: str) -> bool:
        return self.path(key).is_file()

    def export(self, key: str, matrix: np.ndarray) -> Path:
        mat = np.asarray(matrix, dtype=np.float64)
        if mat.ndim == 1:
            mat = mat.reshape(1, -1)
        if mat.ndim != 2:
            raise ValueError(f"only 2D matrices can be exported, got ndim={mat.ndim}")
        self.directory.mkdir(parents=True, exist_ok=True)
        fp = self.path(key)
        data = {
            "schema_version": MATRIX_SCHEMA_VERSION,
            "rows": int(mat.shape[0]),
            "cols": int(mat.shape[1]),
            "data": np.ascontiguousarray(mat),
        }
        with open(fp, "wb") as f:
            pickle.dump(data, f)
        logger.debug(f"Exported {key}: {mat.shape[0]}x{mat.shape[1]} -> {fp}")
        return fp

    def import_(self, key: str) -> np.ndarray:
        fp = self.path(key)
        with open(fp, "rb") as f:
            data = pickle.load(f)
        if not isinstance(data, dict) or data.get("schema_version") != MATRIX_SCHEMA_VERSION:
            raise ValueError(f"unsupported matrix file: {fp}")
        rows, cols = int(data["rows"]), int(data["cols"])
        mat = np.asarray(data["data"], dtype=np.float64).reshape(rows, cols)
        logger.debug(f"Imported {key}: {rows}x{cols} <- {fp}")
        return mat


def serialize_rect(rect) -> Optional[Dict]:
    if rect is None:
        return None
    return {
        "x": int(rect.x),
        "y": int(rect.y),
        "width": int(rect.width),
        "height": int(rect.height),
        "bbox": rect.to_xyxy(),
    }


def serialize_point(pt) -> Optional[Tuple[float, float]]:
    if pt is None:
        return None
    return (round(float(pt.x), 2), round(float(pt.y), 2))


def serialize_face(face, image_shape: Optional[Tuple[int, int]] = None) -> Dict:
    """JSON-safe view of a NormalizedFace (the pixel data itself is dropped).

    image_shape: (h, w) of the source image, adds normalized bbox coords.
    """
    out = {
        "rect": serialize_rect(face.rect),
        "left_eye": serialize_point(face.left_eye),
        "right_eye": serialize_point(face.right_eye),
        "aligned": bool(face.aligned),
        "canonical_size": [int(face.image.shape[1]), int(face.image.shape[0])],
    }
    if image_shape is not None and face.rect is not None:
        h, w = image_shape[0], image_shape[1]
        x1, y1, x2, y2 = face.rect.to_xyxy()
        out["bbox_norm"] = [round(x1 / w, 4), round(y1 / h, 4), round(x2 / w, 4), round(y2 / h, 4)]
    return out


def serialize_prediction(result) -> Optional[Dict]:
    if result is None:
        return None
    return {
        "decision_value": float(result.decision_value),
        "label": int(result.label) if result.label is not None else None,
        "accepted": bool(result.accepted),
    }

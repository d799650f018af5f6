from __future__ import annotations

import numpy as np


def flatten_rows(images) -> np.ndarray:
    """Stack equally-shaped 2D images into an (N, H*W) float64 matrix, one image per row."""
    rows = [np.asarray(img, dtype=np.float64).reshape(1, -1) for img in images]
    if not rows:
        raise ValueError("no images to flatten")
    width = rows[0].shape[1]
    for r in rows:
        if r.shape[1] != width:
            raise ValueError(f"row length mismatch: {r.shape[1]} != {width}")
    return np.ascontiguousarray(np.concatenate(rows, axis=0))


def rescale_to_uint8(arr: np.ndarray, eps: float = 1e-12) -> np.ndarray:
    """Min-max stretch an array to the full 0..255 range as uint8.

    A constant array maps to all zeros.
    """
    a = np.asarray(arr, dtype=np.float64)
    lo = float(np.min(a)) if a.size else 0.0
    hi = float(np.max(a)) if a.size else 0.0
    if hi - lo < eps:
        return np.zeros(a.shape, dtype=np.uint8)
    out = (a - lo) * (255.0 / (hi - lo))
    return np.clip(np.rint(out), 0, 255).astype(np.uint8)


def mean_squared_error(a: np.ndarray, b: np.ndarray) -> float:
    va = np.asarray(a, dtype=np.float64).reshape(-1)
    vb = np.asarray(b, dtype=np.float64).reshape(-1)
    if va.shape != vb.shape:
        raise ValueError(f"shape mismatch: {va.shape} vs {vb.shape}")
    if va.size == 0:
        return 0.0
    d = va - vb
    return float(np.dot(d, d) / d.size)

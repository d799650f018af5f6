from __future__ import annotations

from typing import List, Optional, Tuple

import numpy as np

from facenorm.errors import SampleShapeError
from facenorm.utils.math import flatten_rows


class Corpus:
    """Insertion-ordered collection of canonical face samples.

    All samples share one (height, width); it is fixed either up front or by the
    first sample added, so every sample flattens to the same row length. The
    corpus only grows: there is no removal or reordering.
    """

    def __init__(self, shape: Optional[Tuple[int, int]] = None):
        self.shape: Optional[Tuple[int, int]] = (int(shape[0]), int(shape[1])) if shape is not None else None
        self._samples: List[np.ndarray] = []
        self._labels: List[Optional[int]] = []

    def __len__(self) -> int:
        return len(self._samples)

    def size(self) -> int:
        return len(self._samples)

    @property
    def samples(self) -> Tuple[np.ndarray, ...]:
        return tuple(self._samples)

    @property
    def labels(self) -> Tuple[Optional[int], ...]:
        return tuple(self._labels)

    @property
    def pixel_count(self) -> int:
        if self.shape is None:
            return 0
        return int(self.shape[0]) * int(self.shape[1])

    def check_sample(self, sample: np.ndarray) -> np.ndarray:
        arr = np.asarray(sample)
        if arr.ndim == 3 and arr.shape[2] == 1:
            arr = arr[:, :, 0]
        if arr.ndim != 2:
            raise SampleShapeError(f"face samples must be single-channel 2D images, got shape {arr.shape}")
        if arr.shape[0] <= 0 or arr.shape[1] <= 0:
            raise SampleShapeError(f"empty face sample: {arr.shape}")
        if self.shape is not None and tuple(arr.shape) != tuple(self.shape):
            raise SampleShapeError(f"face sample shape {arr.shape} does not match corpus shape {self.shape}")
        return arr

    def add_face(self, sample: np.ndarray, label: Optional[int] = None) -> int:
        """Append a sample (copied) and return its index."""
        arr = self.check_sample(sample)
        if self.shape is None:
            self.shape = (int(arr.shape[0]), int(arr.shape[1]))
        self._samples.append(np.array(arr, copy=True))
        self._labels.append(int(label) if label is not None else None)
        return len(self._samples) - 1

    def training_matrix(self) -> np.ndarray:
        """(N, H*W) float64 matrix, row i = sample i flattened row-major."""
        return flatten_rows(self._samples)

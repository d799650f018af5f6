"""Eigenface model: PCA basis + pluggable classifier.

Training flattens every canonical face into one row, computes the mean face and
a capped eigenbasis with OpenCV's PCA, and fits the configured classifier on
either the raw rows or their PCA projections. A `TrainedModel` is immutable once
built; retraining builds a new one.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

from facenorm.config import MINIMUM_SAMPLES_FOR_TRAINING
from facenorm.errors import InsufficientSamplesError, SampleShapeError
from facenorm.face.types import PredictionResult
from facenorm.model.classifiers import CLASSIFIERS, ClassifierStrategy, build_classifier
from facenorm.utils.log import get_logger
from facenorm.utils.math import mean_squared_error, rescale_to_uint8

logger = get_logger(__name__)

FEATURE_SPACES = ("raw", "pca")


@dataclass
class RecognizerConfig:
    # Some deployments train from a single enrolled photo, others require two.
    minimum_samples_for_training: int = MINIMUM_SAMPLES_FOR_TRAINING
    # Upper bound on the number of eigenfaces kept (None = no extra cap).
    max_components: Optional[int] = None
    classifier: str = "one_class"  # "one_class" | "linear" | "none"
    feature_space: str = "raw"  # "raw" | "pca"

    def __post_init__(self):
        if self.classifier not in CLASSIFIERS:
            raise ValueError(f"unknown classifier {self.classifier!r}")
        if self.feature_space not in FEATURE_SPACES:
            raise ValueError(f"unknown feature space {self.feature_space!r}")
        if int(self.minimum_samples_for_training) < 1:
            raise ValueError("minimum_samples_for_training must be >= 1")
        if self.max_components is not None and int(self.max_components) < 1:
            raise ValueError("max_components must be >= 1 (or None)")
        if self.feature_space == "pca" and int(self.minimum_samples_for_training) < 2:
            # One sample gives an empty eigenbasis, so there would be nothing to classify on.
            raise ValueError("feature_space='pca' needs minimum_samples_for_training >= 2")
        if self.classifier == "linear" and int(self.minimum_samples_for_training) < 2:
            raise ValueError("classifier='linear' needs minimum_samples_for_training >= 2")


def component_count(n_samples: int, pixel_count: int, cap: Optional[int] = None) -> int:
    """k = min(n - 1, pixels, cap), never negative."""
    k = min(int(n_samples) - 1, int(pixel_count))
    if cap is not None:
        k = min(k, int(cap))
    return max(0, k)


def compute_pca(matrix: np.ndarray, k: int) -> Tuple[np.ndarray, np.ndarray]:
    """Return (mean (D,), eigenvectors (k, D)) for row samples in `matrix`."""
    data = np.ascontiguousarray(matrix, dtype=np.float64)
    if k <= 0:
        return data.mean(axis=0), np.zeros((0, data.shape[1]), dtype=np.float64)
    mean, eigenvectors = cv2.PCACompute(data, mean=None, maxComponents=int(k))
    return np.asarray(mean, dtype=np.float64).reshape(-1), np.asarray(eigenvectors, dtype=np.float64)[: int(k)]


@dataclass(frozen=True)
class TrainedModel:
    shape: Tuple[int, int]  # (height, width) of the samples it was trained on
    mean: np.ndarray  # (D,)
    eigenvectors: np.ndarray  # (k, D), rows ordered by decreasing variance
    features: np.ndarray  # (N, F) training rows in the classifier's feature space
    labels: Tuple[Optional[int], ...]
    feature_space: str
    classifier: ClassifierStrategy

    @property
    def k(self) -> int:
        return int(self.eigenvectors.shape[0])

    def flatten(self, sample: np.ndarray) -> np.ndarray:
        arr = np.asarray(sample)
        if arr.ndim == 3 and arr.shape[2] == 1:
            arr = arr[:, :, 0]
        if tuple(arr.shape) != tuple(self.shape):
            raise SampleShapeError(f"sample shape {arr.shape} does not match model shape {self.shape}")
        return arr.astype(np.float64).reshape(1, -1)

    def project(self, rows: np.ndarray, k: Optional[int] = None) -> np.ndarray:
        basis = self.eigenvectors if k is None else self.eigenvectors[: int(k)]
        return (np.asarray(rows, dtype=np.float64) - self.mean) @ basis.T

    def back_project(self, coeffs: np.ndarray, k: Optional[int] = None) -> np.ndarray:
        basis = self.eigenvectors if k is None else self.eigenvectors[: int(k)]
        return np.asarray(coeffs, dtype=np.float64) @ basis + self.mean

    def to_features(self, rows: np.ndarray) -> np.ndarray:
        if self.feature_space == "pca":
            return self.project(rows)
        return np.asarray(rows, dtype=np.float64)

    def predict(self, sample: np.ndarray) -> PredictionResult:
        return self.classifier.decide(self.to_features(self.flatten(sample)))

    def _check_k(self, k: Optional[int]) -> int:
        if k is None:
            return self.k
        k = int(k)
        if k < 0 or k > self.k:
            raise ValueError(f"k must be in [0, {self.k}], got {k}")
        return k

    def reconstruct_raw(self, sample: np.ndarray, k: Optional[int] = None) -> np.ndarray:
        """Project onto the first k eigenfaces and back; float image of the sample's shape."""
        k = self._check_k(k)
        row = self.flatten(sample)
        approx = self.back_project(self.project(row, k), k)
        return approx.reshape(self.shape)

    def reconstruct(self, sample: np.ndarray, k: Optional[int] = None) -> np.ndarray:
        """Reconstruction stretched to the displayable 0..255 range."""
        return rescale_to_uint8(self.reconstruct_raw(sample, k))

    def reconstruction_error(self, sample: np.ndarray, k: Optional[int] = None) -> float:
        return mean_squared_error(self.reconstruct_raw(sample, k), self.flatten(sample))


class Recognizer:
    """Builds a `TrainedModel` from a training matrix according to `RecognizerConfig`."""

    def __init__(self, config: Optional[RecognizerConfig] = None):
        self.config = config or RecognizerConfig()

    def fit(
        self,
        matrix: np.ndarray,
        shape: Tuple[int, int],
        labels: Optional[Sequence[Optional[int]]] = None,
    ) -> TrainedModel:
        data = np.asarray(matrix, dtype=np.float64)
        n = int(data.shape[0]) if data.ndim == 2 else 0
        required = int(self.config.minimum_samples_for_training)
        if n < required:
            raise InsufficientSamplesError(required, n)

        k = component_count(n, data.shape[1], self.config.max_components)
        mean, eigenvectors = compute_pca(data, k)
        labels = tuple(labels) if labels is not None else (None,) * n

        if self.config.feature_space == "pca":
            features = (data - mean) @ eigenvectors.T
        else:
            features = data

        classifier = build_classifier(self.config.classifier)
        classifier.fit(features, labels)
        logger.info(
            f"Model trained: samples={n}, pixels={data.shape[1]}, k={k}, "
            f"classifier={classifier.name}, features={self.config.feature_space}"
        )
        return TrainedModel(
            shape=(int(shape[0]), int(shape[1])),
            mean=mean,
            eigenvectors=eigenvectors,
            features=np.ascontiguousarray(features),
            labels=labels,
            feature_space=self.config.feature_space,
            classifier=classifier,
        )

    def restore(
        self,
        shape: Tuple[int, int],
        mean: np.ndarray,
        eigenvectors: np.ndarray,
        features: np.ndarray,
        labels: Sequence[Optional[int]],
    ) -> TrainedModel:
        """Rebuild a model from exported matrices, refitting the classifier on the stored features."""
        classifier = build_classifier(self.config.classifier)
        classifier.fit(np.asarray(features, dtype=np.float64), tuple(labels))
        return TrainedModel(
            shape=(int(shape[0]), int(shape[1])),
            mean=np.asarray(mean, dtype=np.float64).reshape(-1),
            eigenvectors=np.asarray(eigenvectors, dtype=np.float64).reshape(-1, int(shape[0]) * int(shape[1])),
            features=np.ascontiguousarray(features, dtype=np.float64),
            labels=tuple(labels),
            feature_space=self.config.feature_space,
            classifier=classifier,
        )

from __future__ import annotations

import threading

from enum import Enum
from typing import Optional, Tuple

import numpy as np

from facenorm.errors import InsufficientSamplesError, ModelNotTrainedError
from facenorm.face.types import PredictionResult
from facenorm.model.corpus import Corpus
from facenorm.model.recognizer import Recognizer, RecognizerConfig, TrainedModel
from facenorm.utils.log import get_logger
from facenorm.utils.serializer import MatrixStore

logger = get_logger(__name__)

# Matrix keys used by export_model/import_model.
MEAN_KEY = "mean"
EIGENVECTORS_KEY = "eigenvectors"
FEATURES_KEY = "features"
LABELS_KEY = "labels"
SHAPE_KEY = "shape"


class SessionState(str, Enum):
    EMPTY = "empty"
    COLLECTING = "collecting"
    TRAINED = "trained"


class EnrollmentSession:
    """Owns the corpus and the current trained model.

    `add_face`, `train` and model import are serialized by one lock. `predict`
    and `reconstruct` take a snapshot of the model reference and run without the
    lock, so a concurrent retrain never changes the model under an in-flight
    prediction.
    """

    def __init__(self, config: Optional[RecognizerConfig] = None, shape: Optional[Tuple[int, int]] = None):
        self.recognizer = Recognizer(config)
        self.corpus = Corpus(shape)
        self._lock = threading.Lock()
        self._model: Optional[TrainedModel] = None

    @property
    def config(self) -> RecognizerConfig:
        return self.recognizer.config

    @property
    def state(self) -> SessionState:
        if self._model is not None:
            return SessionState.TRAINED
        if self.corpus.size() > 0:
            return SessionState.COLLECTING
        return SessionState.EMPTY

    @property
    def model(self) -> Optional[TrainedModel]:
        return self._model

    def size(self) -> int:
        return self.corpus.size()

    def add_face(self, sample: np.ndarray, label: Optional[int] = None) -> int:
        with self._lock:
            return self.corpus.add_face(sample, label)

    def train(self) -> TrainedModel:
        """Fit a fresh model on the whole corpus; the previous model is replaced only on success."""
        with self._lock:
            n = self.corpus.size()
            required = int(self.config.minimum_samples_for_training)
            if n < required or n == 0:
                # Checked before flattening: an empty corpus has no training matrix.
                raise InsufficientSamplesError(max(1, required), n)
            model = self.recognizer.fit(self.corpus.training_matrix(), self.corpus.shape, self.corpus.labels)
            self._model = model
            return model

    def _snapshot(self) -> TrainedModel:
        model = self._model
        if model is None:
            raise ModelNotTrainedError("no trained model: call train() first")
        return model

    def predict(self, sample: np.ndarray) -> PredictionResult:
        return self._snapshot().predict(sample)

    def reconstruct(self, sample: np.ndarray, k: Optional[int] = None) -> np.ndarray:
        return self._snapshot().reconstruct(sample, k)

    def reconstruction_error(self, sample: np.ndarray, k: Optional[int] = None) -> float:
        return self._snapshot().reconstruction_error(sample, k)

    def export_model(self, store: MatrixStore) -> None:
        model = self._snapshot()
        labels = np.array([np.nan if lb is None else float(lb) for lb in model.labels], dtype=np.float64)
        store.export(SHAPE_KEY, np.array([model.shape], dtype=np.float64))
        store.export(MEAN_KEY, model.mean.reshape(1, -1))
        store.export(EIGENVECTORS_KEY, model.eigenvectors)
        store.export(FEATURES_KEY, model.features)
        store.export(LABELS_KEY, labels.reshape(-1, 1))
        logger.info(f"Model exported to {store.directory} (k={model.k}, samples={len(model.labels)})")

    def import_model(self, store: MatrixStore) -> TrainedModel:
        """Load exported matrices and refit the configured classifier on them.

        The corpus is left untouched; the session becomes TRAINED.
        """
        shape_row = store.import_(SHAPE_KEY).reshape(-1)
        shape = (int(shape_row[0]), int(shape_row[1]))
        mean = store.import_(MEAN_KEY)
        eigenvectors = store.import_(EIGENVECTORS_KEY)
        features = store.import_(FEATURES_KEY)
        labels = tuple(None if np.isnan(v) else int(v) for v in store.import_(LABELS_KEY).reshape(-1))

        pixels = shape[0] * shape[1]
        if self.corpus.shape is not None and tuple(self.corpus.shape) != shape:
            raise ValueError(f"exported model shape {shape} does not match corpus shape {self.corpus.shape}")
        if mean.size != pixels:
            raise ValueError(f"exported mean has {mean.size} values, shape {shape} needs {pixels}")
        if eigenvectors.size and eigenvectors.shape[1] != pixels:
            raise ValueError(f"exported eigenvectors have {eigenvectors.shape[1]} columns, shape {shape} needs {pixels}")
        expected = pixels if self.config.feature_space == "raw" else eigenvectors.shape[0]
        if features.shape[1] != expected:
            raise ValueError(
                f"exported features have {features.shape[1]} columns, "
                f"feature_space={self.config.feature_space!r} expects {expected}"
            )

        with self._lock:
            model = self.recognizer.restore(shape, mean, eigenvectors, features, labels)
            self._model = model
        logger.info(f"Model imported from {store.directory} (k={model.k}, samples={len(labels)})")
        return model

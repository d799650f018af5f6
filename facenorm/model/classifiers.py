from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence

import numpy as np

from sklearn.svm import SVC, OneClassSVM

from facenorm.config import LINEAR_SVM_C, ONE_CLASS_GAMMA, ONE_CLASS_NU, ONE_CLASS_TOLERANCE
from facenorm.errors import InsufficientSamplesError
from facenorm.face.types import PredictionResult


class ClassifierStrategy(ABC):
    """Pluggable decision stage on top of the (raw or PCA) feature space."""

    name: str = ""
    requires_labels: bool = False

    @abstractmethod
    def fit(self, features: np.ndarray, labels: Optional[Sequence[Optional[int]]] = None) -> None:
        pass

    @abstractmethod
    def decide(self, feature: np.ndarray) -> PredictionResult:
        """Score one feature row of shape (1, F)."""
        pass


class OneClassStrategy(ClassifierStrategy):
    """RBF one-class SVM: decision >= 0 means "looks like the enrolled face".

    The acceptance threshold is calibrated on the training scores so every
    enrolled sample is accepted; `decision_value` is the SVM score minus that
    threshold.
    """

    name = "one_class"

    def __init__(self, nu: float = ONE_CLASS_NU, gamma=ONE_CLASS_GAMMA, tolerance: float = ONE_CLASS_TOLERANCE):
        self.nu = float(nu)
        self.gamma = gamma
        self.tolerance = float(tolerance)
        self.threshold = 0.0
        self._svm: Optional[OneClassSVM] = None

    def fit(self, features: np.ndarray, labels: Optional[Sequence[Optional[int]]] = None) -> None:
        x = np.asarray(features, dtype=np.float64)
        svm = OneClassSVM(kernel="rbf", nu=self.nu, gamma=self.gamma)
        svm.fit(x)
        scores = svm.decision_function(x)
        self.threshold = min(0.0, float(np.min(scores))) - self.tolerance
        self._svm = svm

    def score(self, feature: np.ndarray) -> float:
        """Raw SVM decision function for one feature row."""
        if self._svm is None:
            raise RuntimeError("one-class SVM used before fit()")
        return float(self._svm.decision_function(np.asarray(feature, dtype=np.float64).reshape(1, -1))[0])

    def decide(self, feature: np.ndarray) -> PredictionResult:
        d = self.score(feature) - self.threshold
        accepted = d >= 0.0
        return PredictionResult(decision_value=d, label=1 if accepted else -1, accepted=accepted)


class LinearStrategy(ClassifierStrategy):
    """Linear-kernel SVM over labelled samples (one label per enrolled identity)."""

    name = "linear"
    requires_labels = True

    def __init__(self, C: float = LINEAR_SVM_C):
        self.C = float(C)
        self._svm: Optional[SVC] = None

    def fit(self, features: np.ndarray, labels: Optional[Sequence[Optional[int]]] = None) -> None:
        if labels is None or any(lb is None for lb in labels):
            raise ValueError("linear classifier needs a label for every sample")
        y = np.asarray([int(lb) for lb in labels], dtype=np.int64)
        distinct = int(np.unique(y).size)
        if distinct < 2:
            raise InsufficientSamplesError(2, distinct, what="distinct labels")
        svm = SVC(kernel="linear", C=self.C, decision_function_shape="ovr")
        svm.fit(np.asarray(features, dtype=np.float64), y)
        self._svm = svm

    def decide(self, feature: np.ndarray) -> PredictionResult:
        if self._svm is None:
            raise RuntimeError("linear SVM used before fit()")
        x = np.asarray(feature, dtype=np.float64).reshape(1, -1)
        label = int(self._svm.predict(x)[0])
        scores = np.asarray(self._svm.decision_function(x)).reshape(-1)
        # Binary SVC yields one signed margin; multi-class yields one score per class.
        value = abs(float(scores[0])) if scores.size == 1 else float(np.max(scores))
        return PredictionResult(decision_value=value, label=label, accepted=True)


class NullStrategy(ClassifierStrategy):
    """Placeholder: keeps the PCA model but makes no decision."""

    name = "none"

    def fit(self, features: np.ndarray, labels: Optional[Sequence[Optional[int]]] = None) -> None:
        return None

    def decide(self, feature: np.ndarray) -> PredictionResult:
        return PredictionResult(decision_value=0.0, label=None, accepted=False)


CLASSIFIERS = {
    OneClassStrategy.name: OneClassStrategy,
    LinearStrategy.name: LinearStrategy,
    NullStrategy.name: NullStrategy,
}


def build_classifier(name: str) -> ClassifierStrategy:
    try:
        cls = CLASSIFIERS[str(name)]
    except KeyError:
        raise ValueError(f"unknown classifier {name!r}, expected one of {sorted(CLASSIFIERS)}") from None
    return cls()

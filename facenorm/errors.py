"""Error types raised by the normalization and recognition pipeline.

Detection misses are not errors: detectors return empty results / None and the
callers degrade (e.g. the aligner passes the face through unchanged).
"""

from __future__ import annotations


class FaceNormError(Exception):
    """Base class for all facenorm errors."""


class InsufficientSamplesError(FaceNormError, ValueError):
    """train() was called with too few enrolled samples (or labels)."""

    def __init__(self, required: int, actual: int, what: str = "samples"):
        self.required = int(required)
        self.actual = int(actual)
        self.what = what
        super().__init__(f"training needs at least {self.required} {what}, got {self.actual}")


class ModelNotTrainedError(FaceNormError, RuntimeError):
    """An operation needs a trained model but train() has not succeeded yet."""


class ResourceLoadError(FaceNormError, IOError):
    """Bundled classifier data could not be provisioned or loaded."""


class ImageLoadError(FaceNormError, IOError):
    """An image could not be read or decoded."""


class SampleShapeError(FaceNormError, ValueError):
    """A face sample does not have the corpus' canonical single-channel shape."""

"""Cascade classifier provisioning.

Bundled cascade XML files are copied into a local cache directory and the
OpenCV classifiers are built from those copies exactly once. The resulting
`DetectorBundle` is read-only afterwards and can be shared by worker threads.
"""

from __future__ import annotations

import shutil
import threading

from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Optional

import cv2

from facenorm.config import EYE_CASCADE_FILENAME, FACE_CASCADE_FILENAME
from facenorm.errors import ResourceLoadError
from facenorm.utils.log import get_logger, silence_stderr

logger = get_logger(__name__)


class CascadeResourceProvider:
    """Materializes bundled cascade files into `cache_dir`."""

    def __init__(self, cache_dir, source_dir: Optional[str] = None):
        self.cache_dir = Path(cache_dir)
        self.source_dir = Path(source_dir if source_dir is not None else cv2.data.haarcascades)

    def materialize(self, filename: str) -> Path:
        src = self.source_dir / filename
        if not src.is_file():
            raise ResourceLoadError(f"bundled cascade not found: {src}")
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            dst = self.cache_dir / filename
            shutil.copyfile(src, dst)
        except OSError as e:
            raise ResourceLoadError(f"failed to copy {src} into {self.cache_dir}: {e}") from e
        return dst.resolve()


def _load_cascade(path: Path) -> cv2.CascadeClassifier:
    try:
        with silence_stderr():
            clf = cv2.CascadeClassifier(str(path))
    except cv2.error as e:
        raise ResourceLoadError(f"failed to parse cascade file {path}: {e}") from e
    if clf.empty():
        raise ResourceLoadError(f"failed to initialize cascade classifier from {path}")
    return clf


class DetectorBundle:
    """Face + eye cascade classifiers, initialized once and shared read-only."""

    def __init__(self, face_classifier, eye_classifier):
        self.face_classifier = face_classifier
        self.eye_classifier = eye_classifier

    @classmethod
    def from_provider(
        cls,
        provider: CascadeResourceProvider,
        face_filename: str = FACE_CASCADE_FILENAME,
        eye_filename: str = EYE_CASCADE_FILENAME,
    ) -> "DetectorBundle":
        face_clf = _load_cascade(provider.materialize(face_filename))
        logger.info(f"Face classifier initialized: {face_filename}")
        eye_clf = _load_cascade(provider.materialize(eye_filename))
        logger.info(f"Eye classifier initialized: {eye_filename}")
        return cls(face_clf, eye_clf)


class DetectorBundleLoader:
    """One-time initialization barrier for a `DetectorBundle`.

    `start()` kicks off loading on a background thread; every `get()` waits for
    that single load to finish and returns the same bundle (or re-raises the
    load error). Stages should be handed the bundle from `get()`, so nothing can
    touch the classifiers before initialization has completed.
    """

    def __init__(self, provider: CascadeResourceProvider):
        self.provider = provider
        self._lock = threading.Lock()
        self._future: Optional[Future] = None

    def start(self) -> Future:
        with self._lock:
            if self._future is None:
                executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cascade-loader")
                self._future = executor.submit(DetectorBundle.from_provider, self.provider)
                executor.shutdown(wait=False)
            return self._future

    def get(self, timeout: Optional[float] = None) -> DetectorBundle:
        return self.start().result(timeout=timeout)

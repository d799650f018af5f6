from __future__ import annotations

from pathlib import Path
import sys
import threading

import cv2
import numpy as np
import pytest

repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

import facenorm.face.resources as resources

from facenorm.config import EYE_CASCADE_FILENAME, FACE_CASCADE_FILENAME
from facenorm.errors import ImageLoadError, ResourceLoadError
from facenorm.face.normalizer import FaceNormalizer
from facenorm.face.preprocess import load_image, scale_image
from facenorm.face.resources import CascadeResourceProvider, DetectorBundle, DetectorBundleLoader
from facenorm.face.types import Rect
from facenorm.model.session import EnrollmentSession


class _FakeCascade:
    def __init__(self, hits_fn):
        self.hits_fn = hits_fn
        self.shapes = []

    def detectMultiScale(self, image, scaleFactor, minNeighbors, minSize, maxSize):
        self.shapes.append(image.shape)
        hits = self.hits_fn(image)
        return np.array(hits, dtype=np.int32) if hits else ()


def _eye_hits(region):
    # One eye roughly in the middle of every search area.
    h, w = region.shape[:2]
    return [[w // 4, h // 4, w // 2, h // 2]]


def _bundle(face_hits, eye_hits=_eye_hits):
    return DetectorBundle(_FakeCascade(lambda img: face_hits), _FakeCascade(eye_hits))


def _photo(h=240, w=320, seed=0):
    return np.random.default_rng(seed).integers(0, 256, size=(h, w, 3), dtype=np.uint8)


def test_normalize_returns_aligned_canonical_face():
    normalizer = FaceNormalizer(_bundle([[40, 30, 150, 150]]))
    face = normalizer.normalize(_photo())
    assert face is not None
    assert face.aligned is True
    assert face.rect == Rect(40, 30, 150, 150)
    assert face.image.shape == (320, 320)
    assert face.image.dtype == np.uint8
    assert face.left_eye.x < face.right_eye.x


def test_normalize_degrades_when_eyes_are_missing():
    normalizer = FaceNormalizer(_bundle([[10, 10, 100, 120]], eye_hits=lambda region: []))
    face = normalizer.normalize(_photo())
    assert face is not None
    assert face.aligned is False
    assert face.image.shape == (320, 320)


def test_normalize_detection_miss_returns_none():
    normalizer = FaceNormalizer(_bundle([]))
    assert normalizer.normalize(_photo()) is None
    assert normalizer.count_faces(_photo()) == 0


def test_detection_runs_on_downscaled_image():
    bundle = _bundle([[10, 20, 50, 50], [0, 0, 30, 30]])
    normalizer = FaceNormalizer(bundle, working_width=320)
    face = normalizer.normalize(_photo(h=480, w=640))
    assert bundle.face_classifier.shapes[0] == (240, 320)
    assert face.rect == Rect(20, 40, 100, 100)
    assert normalizer.count_faces(_photo(h=480, w=640)) == 2


def test_normalized_faces_feed_the_corpus():
    normalizer = FaceNormalizer(_bundle([[40, 30, 150, 150]]))
    session = EnrollmentSession()
    for seed in range(3):
        session.add_face(normalizer.normalize(_photo(seed=seed)).image)
    session.train()
    assert session.corpus.shape == (320, 320)


def test_provider_copies_bundled_file(tmp_path: Path):
    src = tmp_path / "bundled"
    src.mkdir()
    (src / "cascade.xml").write_text("<opencv_storage/>")
    provider = CascadeResourceProvider(tmp_path / "cache", source_dir=str(src))
    out = provider.materialize("cascade.xml")
    assert out.parent == (tmp_path / "cache").resolve()
    assert out.read_text() == "<opencv_storage/>"
    with pytest.raises(ResourceLoadError):
        provider.materialize("missing.xml")


def test_bundle_rejects_unusable_cascade(tmp_path: Path):
    src = tmp_path / "bundled"
    src.mkdir()
    for name in (FACE_CASCADE_FILENAME, EYE_CASCADE_FILENAME):
        (src / name).write_text("<opencv_storage></opencv_storage>")
    provider = CascadeResourceProvider(tmp_path / "cache", source_dir=str(src))
    with pytest.raises(ResourceLoadError):
        DetectorBundle.from_provider(provider)


def test_loader_initializes_once(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    calls = []
    sentinel = object()

    def _fake_from_provider(provider):
        calls.append(provider)
        return sentinel

    monkeypatch.setattr(resources.DetectorBundle, "from_provider", staticmethod(_fake_from_provider))
    loader = DetectorBundleLoader(CascadeResourceProvider(tmp_path))

    results = []
    threads = [threading.Thread(target=lambda: results.append(loader.get(timeout=10))) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert results == [sentinel] * 4
    assert loader.start() is loader.start()
    assert len(calls) == 1


def test_loader_reraises_load_error(tmp_path: Path):
    loader = DetectorBundleLoader(CascadeResourceProvider(tmp_path / "cache", source_dir=str(tmp_path / "nothing")))
    with pytest.raises(ResourceLoadError):
        loader.get(timeout=10)


def test_real_cascades_find_nothing_on_blank_image(tmp_path: Path):
    if not hasattr(cv2, "data"):
        pytest.skip("opencv build without bundled cascades")
    bundle = DetectorBundleLoader(CascadeResourceProvider(tmp_path)).get(timeout=60)
    normalizer = FaceNormalizer(bundle)
    blank = np.full((240, 320), 128, dtype=np.uint8)
    assert normalizer.count_faces(blank) == 0
    assert normalizer.normalize(blank) is None


def test_load_image_errors(tmp_path: Path):
    with pytest.raises(ImageLoadError):
        load_image(tmp_path / "nope.jpg")
    bad = tmp_path / "bad.jpg"
    bad.write_bytes(b"not an image")
    with pytest.raises(ImageLoadError):
        load_image(bad)

    good = tmp_path / "good.png"
    cv2.imwrite(str(good), _photo(h=20, w=30))
    assert load_image(good).shape == (20, 30, 3)


def test_scale_image_keeps_aspect_ratio():
    out = scale_image(np.zeros((300, 400), dtype=np.uint8), 1000)
    assert out.shape == (750, 1000)

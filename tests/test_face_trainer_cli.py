from __future__ import annotations

from pathlib import Path
import json
import sys

import cv2
import numpy as np
import pytest

repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

import face_trainer

from facenorm.face.resources import DetectorBundle


class _FakeCascade:
    def __init__(self, hits):
        self.hits = hits

    def detectMultiScale(self, image, scaleFactor, minNeighbors, minSize, maxSize):
        return np.array(self.hits, dtype=np.int32) if self.hits else ()


class _DummyLoader:
    def __init__(self, *args, **kwargs) -> None:
        self.bundle = DetectorBundle(_FakeCascade([[20, 20, 120, 120]]), _FakeCascade([]))

    def start(self):
        return None

    def get(self, timeout=None):
        return self.bundle


def _write_photos(directory: Path, n: int, seed: int) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    rng = np.random.default_rng(seed)
    for i in range(n):
        img = rng.integers(0, 256, size=(200, 200, 3), dtype=np.uint8)
        cv2.imwrite(str(directory / f"{i:03d}.png"), img)


def test_collect_enrollment_images_reads_integer_labels(tmp_path: Path):
    _write_photos(tmp_path, 1, seed=0)
    _write_photos(tmp_path / "3", 2, seed=1)
    _write_photos(tmp_path / "bob", 1, seed=2)
    items = face_trainer.collect_enrollment_images(tmp_path)
    assert [lb for _, lb in items] == [None, 3, 3]


def test_cli_trains_exports_and_predicts(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(face_trainer, "DetectorBundleLoader", _DummyLoader)
    enroll = tmp_path / "enroll"
    _write_photos(enroll / "0", 2, seed=10)
    _write_photos(enroll / "1", 2, seed=11)
    query = tmp_path / "query.png"
    cv2.imwrite(str(query), np.full((200, 200, 3), 90, dtype=np.uint8))
    out_json = tmp_path / "report.json"
    export_dir = tmp_path / "model"

    code = face_trainer.main(
        [
            str(enroll),
            "--classifier",
            "linear",
            "--feature-space",
            "pca",
            "--query",
            str(query),
            "--export-dir",
            str(export_dir),
            "--output-json",
            str(out_json),
            "--workers",
            "2",
        ]
    )
    assert code == 0
    report = json.loads(out_json.read_text(encoding="utf-8"))
    assert report["trained"] is True
    assert report["samples"] == 4
    assert report["state"] == "trained"
    assert report["queries"][0]["prediction"]["label"] in (0, 1)
    assert (export_dir / "eigenvectors.data").is_file()


def test_cli_reports_insufficient_samples(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(face_trainer, "DetectorBundleLoader", _DummyLoader)
    enroll = tmp_path / "enroll"
    enroll.mkdir()
    out_json = tmp_path / "report.json"
    code = face_trainer.main([str(enroll), "--output-json", str(out_json)])
    assert code == 1
    report = json.loads(out_json.read_text(encoding="utf-8"))
    assert report["trained"] is False
    assert report["state"] == "empty"

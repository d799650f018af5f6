"""命令行入口：对图库照片做人脸归一化并训练 eigenface 模型，可选地识别查询图片。

目录结构：
    ENROLL_DIR/*.jpg            无标签（单人，one-class）
    ENROLL_DIR/<整数标签>/*.jpg   多人（linear 分类器需要至少两个标签）
"""

from __future__ import annotations

import argparse
import json
import sys
import time

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import cv2

from facenorm.errors import FaceNormError, ImageLoadError, InsufficientSamplesError, ResourceLoadError
from facenorm.face.normalizer import FaceNormalizer, NormalizedFace
from facenorm.face.preprocess import load_image
from facenorm.face.resources import CascadeResourceProvider, DetectorBundleLoader
from facenorm.model.recognizer import RecognizerConfig
from facenorm.model.session import EnrollmentSession
from facenorm.utils.log import get_logger
from facenorm.utils.serializer import MatrixStore, serialize_face, serialize_prediction

logger = get_logger(__name__)

IMAGE_SUFFIXES = (".jpg", ".jpeg", ".png", ".bmp")


def _list_images(directory: Path) -> List[Path]:
    return sorted(p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in IMAGE_SUFFIXES)


def collect_enrollment_images(enroll_dir: Path) -> List[Tuple[Path, Optional[int]]]:
    """Return (image path, label) pairs; integer-named sub-directories provide labels."""
    items: List[Tuple[Path, Optional[int]]] = [(p, None) for p in _list_images(enroll_dir)]
    for sub in sorted(p for p in enroll_dir.iterdir() if p.is_dir()):
        try:
            label: Optional[int] = int(sub.name)
        except ValueError:
            logger.warning(f"跳过非整数标签目录: {sub}")
            continue
        items.extend((p, label) for p in _list_images(sub))
    return items


def _normalize_file(normalizer: FaceNormalizer, path: Path) -> Tuple[Path, Optional[NormalizedFace], Optional[Tuple[int, int]]]:
    try:
        image = load_image(path)
    except ImageLoadError as e:
        logger.warning(f"无法读取图像: {e}")
        return path, None, None
    face = normalizer.normalize(image)
    if face is None:
        logger.warning(f"在 {path} 中未检测到人脸")
    return path, face, image.shape[:2]


def normalize_files(normalizer: FaceNormalizer, paths: List[Path], workers: int = 4):
    # Normalizer stages are read-only after load, so images can go through them in parallel.
    with ThreadPoolExecutor(max_workers=max(1, int(workers))) as pool:
        return list(pool.map(lambda p: _normalize_file(normalizer, p), paths))


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="人脸归一化 + eigenface 训练/识别")
    parser.add_argument("enroll_dir", help="图库目录（图片或以整数标签命名的子目录）")
    parser.add_argument("--query", "-q", nargs="*", default=[], help="需要识别的图片路径")
    parser.add_argument("--cache-dir", default=".cache/cascades", help="级联分类器缓存目录")
    parser.add_argument("--import-dir", default=None, help="从该目录导入已训练模型（跳过训练）")
    parser.add_argument("--export-dir", default=None, help="训练后导出模型矩阵到该目录")
    parser.add_argument("--save-normalized", default=None, help="保存归一化后的人脸图片")
    parser.add_argument(
        "--classifier", default="one_class", choices=["one_class", "linear", "none"], help="分类器类型"
    )
    parser.add_argument("--feature-space", default="raw", choices=["raw", "pca"], help="分类器输入：原始像素或 PCA 投影")
    parser.add_argument("--min-samples", type=int, default=None, help="训练所需最少样本数")
    parser.add_argument("--max-components", type=int, default=None, help="最多保留的特征脸数量")
    parser.add_argument("--workers", type=int, default=4, help="并行归一化线程数")
    parser.add_argument("--output-json", "-j", default="face_trainer_results.json", help="结果 JSON 路径")
    args = parser.parse_args(argv)

    enroll_dir = Path(args.enroll_dir)
    if not enroll_dir.is_dir():
        logger.error(f"图库目录不存在: {enroll_dir}")
        return 2

    min_samples = args.min_samples
    if min_samples is None:
        min_samples = 2 if (args.feature_space == "pca" or args.classifier == "linear") else 1
    try:
        config = RecognizerConfig(
            minimum_samples_for_training=min_samples,
            max_components=args.max_components,
            classifier=args.classifier,
            feature_space=args.feature_space,
        )
    except ValueError as e:
        logger.error(f"参数错误: {e}")
        return 2

    loader = DetectorBundleLoader(CascadeResourceProvider(args.cache_dir))
    loader.start()
    try:
        bundle = loader.get()
    except ResourceLoadError as e:
        logger.error(f"分类器初始化失败: {e}")
        return 1
    normalizer = FaceNormalizer(bundle)
    session = EnrollmentSession(config, shape=(normalizer.canonical_size[1], normalizer.canonical_size[0]))

    t0 = time.time()
    items = collect_enrollment_images(enroll_dir)
    labels = {p: lb for p, lb in items}
    logger.info(f"图库图片: {len(items)} 张")

    save_dir = Path(args.save_normalized) if args.save_normalized else None
    if save_dir is not None:
        save_dir.mkdir(parents=True, exist_ok=True)

    report: Dict = {"enrollment": [], "queries": [], "trained": False}
    for path, face, shape in normalize_files(normalizer, [p for p, _ in items], args.workers):
        entry: Dict = {"path": str(path), "label": labels.get(path), "face": None}
        if face is not None:
            session.add_face(face.image, labels.get(path))
            entry["face"] = serialize_face(face, shape)
            if save_dir is not None:
                cv2.imwrite(str(save_dir / f"{path.stem}_normalized.png"), face.image)
        report["enrollment"].append(entry)
    logger.info(f"归一化完成: {session.size()}/{len(items)} 张可用, 用时 {time.time() - t0:.2f}s")

    try:
        if args.import_dir:
            session.import_model(MatrixStore(args.import_dir))
        else:
            session.train()
        report["trained"] = True
    except InsufficientSamplesError as e:
        logger.error(f"训练失败: {e}")
    except (FaceNormError, ValueError, OSError) as e:
        logger.error(f"模型加载/训练失败: {e}")

    if report["trained"] and args.export_dir:
        session.export_model(MatrixStore(args.export_dir))

    if args.query:
        for path, face, shape in normalize_files(normalizer, [Path(q) for q in args.query], args.workers):
            entry = {"path": str(path), "face": None, "prediction": None}
            if face is not None:
                entry["face"] = serialize_face(face, shape)
                if report["trained"]:
                    result = session.predict(face.image)
                    entry["prediction"] = serialize_prediction(result)
                    logger.info(
                        f"{path.name}: label={result.label}, decision={result.decision_value:.4f}, "
                        f"accepted={result.accepted}"
                    )
            report["queries"].append(entry)

    report["state"] = session.state.value
    report["samples"] = session.size()
    with open(args.output_json, "w", encoding="utf-8") as f:
        json.dump(report, f, ensure_ascii=False, indent=2)
    logger.info(f"结果已写入 {args.output_json}")
    return 0 if report["trained"] else 1


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""CLI for registering a face identity from an image."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

import numpy as np

from faceprint.config import load_pipeline_config
from faceprint.io_utils import load_image, setup_logging
from faceprint.pipeline import FacePipeline
from faceprint.recognition.embed_arcface import ArcFaceEngine, EngineLoader
from faceprint.recognition.identity_store import IdentityStore
from faceprint.types import BoundingBox

LOGGER = logging.getLogger("scripts.register")


def add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--store",
        type=Path,
        default=Path("data/identities.parquet"),
        help="Identity store parquet file",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("configs/pipeline.yaml"),
        help="Pipeline configuration YAML",
    )
    parser.add_argument(
        "--arcface-model",
        type=str,
        default=None,
        help="Optional path to an ArcFace .onnx file or InsightFace model name",
    )
    parser.add_argument(
        "--providers",
        type=str,
        nargs="*",
        default=None,
        help="Execution providers for ONNXRuntime (e.g. CUDAExecutionProvider)",
    )
    parser.add_argument(
        "--bbox",
        type=float,
        nargs=4,
        default=None,
        metavar=("X", "Y", "WIDTH", "HEIGHT"),
        help="Face bounding box in image pixels",
    )
    parser.add_argument(
        "--detections",
        type=Path,
        default=None,
        help="Saved detector output (.npy, [1, N, 6] normalized x1 y1 x2 y2 conf class)",
    )
    parser.add_argument("--threshold", type=float, default=None, help="Override similarity threshold")
    parser.add_argument("--mirrored", action="store_true", help="Image is a mirrored front-camera capture")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Register a face identity")
    parser.add_argument("image", type=Path, help="Image containing the face")
    parser.add_argument("--name", type=str, required=True, help="Display name for the identity")
    parser.add_argument("--allow-duplicate-name", action="store_true", help="Register even if the name exists")
    add_common_args(parser)
    return parser.parse_args()


def build_pipeline(args: argparse.Namespace) -> FacePipeline:
    config = load_pipeline_config(args.config).with_overrides(similarity_threshold=args.threshold)
    loader = EngineLoader(
        lambda: ArcFaceEngine(model_path=args.arcface_model, providers=args.providers, input_size=config.input_size)
    )
    return FacePipeline(loader, store=IdentityStore(args.store), config=config)


def main() -> None:
    args = parse_args()
    setup_logging()

    if args.bbox is None and args.detections is None:
        raise SystemExit("Provide either --bbox or --detections")

    pipeline = build_pipeline(args)
    if not args.allow_duplicate_name and pipeline.store.is_name_taken(args.name):
        raise SystemExit(f"An identity named {args.name!r} is already registered")

    image = load_image(args.image)
    if args.detections is not None:
        identity = pipeline.register_from_detections(
            args.name, image, np.load(args.detections), photo_ref=str(args.image)
        )
    else:
        identity = pipeline.register(
            args.name,
            image,
            BoundingBox(*args.bbox),
            photo_ref=str(args.image),
            mirrored=args.mirrored,
        )
    LOGGER.info("Registered %s as %s in %s", identity.name, identity.id, args.store)


if __name__ == "__main__":
    main()

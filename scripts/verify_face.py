#!/usr/bin/env python3
"""CLI for verifying or identifying a face against registered identities."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

import numpy as np

from faceprint.io_utils import dump_json, load_image, setup_logging
from faceprint.types import BoundingBox, FrameSize
from scripts.register_face import add_common_args, build_pipeline

LOGGER = logging.getLogger("scripts.verify")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Verify a face against a registered identity")
    parser.add_argument("image", type=Path, help="Image containing the face")
    parser.add_argument(
        "--identity-id",
        type=str,
        default=None,
        help="Identity to verify against; omit to pick the nearest registered identity",
    )
    parser.add_argument("--output", type=Path, default=None, help="Optional JSON file for the match result")
    add_common_args(parser)
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    setup_logging()

    if args.bbox is None and args.detections is None:
        raise SystemExit("Provide either --bbox or --detections")

    pipeline = build_pipeline(args)
    image = load_image(args.image)
    if args.bbox is not None:
        bounds = BoundingBox(*args.bbox)
    else:
        bounds = pipeline.detect_primary(np.load(args.detections), FrameSize.of(image)).bounds

    payload = {}
    if args.identity_id:
        result = pipeline.verify(args.identity_id, image, bounds, mirrored=args.mirrored)
        payload = {"identity_id": args.identity_id, "result": result}
    else:
        best = pipeline.identify(image, bounds, mirrored=args.mirrored)
        if best is None:
            LOGGER.warning("Identity store %s is empty", args.store)
        else:
            identity, result = best
            payload = {"identity_id": identity.id, "name": identity.name, "result": result}

    if payload:
        result = payload["result"]
        LOGGER.info(
            "%s identity %s (%d%% match, similarity=%.4f)",
            "Verified" if result.is_match else "Did not verify",
            payload["identity_id"],
            result.confidence_percent,
            result.similarity,
        )
    if args.output is not None:
        dump_json(args.output, payload)


if __name__ == "__main__":
    main()

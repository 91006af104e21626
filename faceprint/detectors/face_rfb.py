"""Decoding of RFB-320 style face detector outputs."""

from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np

from faceprint.types import BoundingBox, FaceDetection, FrameSize

LOGGER = logging.getLogger("faceprint.detectors.face")


def decode_predictions(
    predictions: np.ndarray,
    frame: FrameSize,
    conf_thresh: float = 0.5,
) -> List[FaceDetection]:
    """Convert a ``[1, N, 6]`` prediction tensor into frame-space detections.

    Each row is ``(x1, y1, x2, y2, confidence, class)`` with coordinates
    normalized to ``[0, 1]``. Rows at or below ``conf_thresh`` are dropped and
    the rest are returned most-confident first.
    """
    rows = np.asarray(predictions, dtype=np.float32)
    if rows.size == 0:
        return []
    rows = rows.reshape(-1, rows.shape[-1])
    if rows.shape[1] < 5:
        raise ValueError(f"Expected at least 5 values per detection, got {rows.shape[1]}")

    detections: List[FaceDetection] = []
    for row in rows:
        confidence = float(row[4])
        if confidence <= conf_thresh:
            continue
        x1 = float(row[0]) * frame.width
        y1 = float(row[1]) * frame.height
        x2 = float(row[2]) * frame.width
        y2 = float(row[3]) * frame.height
        bounds = BoundingBox(
            x=max(0.0, x1),
            y=max(0.0, y1),
            width=max(0.0, x2 - x1),
            height=max(0.0, y2 - y1),
        )
        detections.append(FaceDetection(bounds=bounds, confidence=confidence))

    detections.sort(key=lambda det: det.confidence, reverse=True)
    LOGGER.debug("Decoded %d face(s) above %.2f from %d rows", len(detections), conf_thresh, len(rows))
    return detections


def primary_face(detections: List[FaceDetection]) -> Optional[FaceDetection]:
    """Most confident detection, or None."""
    if not detections:
        return None
    return max(detections, key=lambda det: det.confidence)

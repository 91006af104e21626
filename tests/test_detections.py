import numpy as np
import pytest

from faceprint.detectors.face_rfb import decode_predictions, primary_face
from faceprint.types import BoundingBox, FrameSize


def test_decode_scales_filters_and_sorts():
    predictions = np.array(
        [
            [
                [0.10, 0.20, 0.30, 0.40, 0.60, 1.0],
                [0.50, 0.50, 0.75, 0.75, 0.90, 1.0],
                [0.00, 0.00, 0.10, 0.10, 0.50, 1.0],
            ]
        ],
        dtype=np.float32,
    )
    detections = decode_predictions(predictions, FrameSize(640, 480), conf_thresh=0.5)
    assert [round(det.confidence, 2) for det in detections] == [0.9, 0.6]
    top = detections[0].bounds
    assert top.x == pytest.approx(320.0)
    assert top.y == pytest.approx(240.0)
    assert top.width == pytest.approx(160.0)
    assert top.height == pytest.approx(120.0)


def test_decode_clamps_negative_origin():
    predictions = np.array([[[-0.1, -0.05, 0.2, 0.3, 0.8, 1.0]]], dtype=np.float32)
    (detection,) = decode_predictions(predictions, FrameSize(100, 200))
    assert detection.bounds.x == 0.0
    assert detection.bounds.y == 0.0
    assert detection.bounds.width == pytest.approx(30.0)
    assert detection.bounds.height == pytest.approx(70.0)


def test_decode_empty_predictions():
    assert decode_predictions(np.zeros((1, 0, 6), dtype=np.float32), FrameSize(10, 10)) == []


def test_primary_face():
    assert primary_face([]) is None
    detections = decode_predictions(
        np.array([[[0.0, 0.0, 0.5, 0.5, 0.7, 1.0], [0.5, 0.5, 1.0, 1.0, 0.8, 1.0]]], dtype=np.float32),
        FrameSize(100, 100),
    )
    assert primary_face(detections).bounds == BoundingBox(50.0, 50.0, 50.0, 50.0)

"""Captured-photo processing: map to preview space, crop the face, resize."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from faceprint.preprocess.crop import CropRegionCalculator
from faceprint.types import BoundingBox, CropRegion, FrameSize

LOGGER = logging.getLogger("faceprint.preprocess.photo")


@dataclass
class ProcessedPhoto:
    image: np.ndarray
    crop: Optional[CropRegion] = None


def _resize(image: np.ndarray, width: int, height: int) -> np.ndarray:
    src_h, src_w = image.shape[:2]
    if src_w == width and src_h == height:
        return image
    return cv2.resize(image, (int(width), int(height)), interpolation=cv2.INTER_LINEAR)


def process_face_photo(
    image: np.ndarray,
    bounds: BoundingBox,
    calculator: CropRegionCalculator,
    preview: Optional[FrameSize] = None,
    mirrored: bool = False,
    final_size: int = 112,
) -> ProcessedPhoto:
    """Crop the detected face out of a captured photo.

    Detector boxes are expressed in preview coordinates, so the photo is first
    resized to the preview dimensions (when given) before the crop region is
    computed. Mirrored front-camera captures are flipped horizontally after the
    crop.
    """
    if image is None or image.size == 0:
        raise ValueError("Cannot process an empty photo")
    if preview is not None:
        image = _resize(image, preview.width, preview.height)
    frame = FrameSize.of(image)
    region = calculator.compute(bounds, frame)
    face = region.slice(image)
    if face.size == 0:
        raise ValueError(f"Crop region {region} is empty for frame {frame.width}x{frame.height}")
    face = _resize(face, final_size, final_size)
    if mirrored:
        face = cv2.flip(face, 1)
    LOGGER.debug("Processed face photo frame=%dx%d crop=%s mirrored=%s", frame.width, frame.height, region, mirrored)
    return ProcessedPhoto(image=np.ascontiguousarray(face), crop=region)


def process_gallery_photo(image: np.ndarray, final_size: int = 112) -> ProcessedPhoto:
    """Resize an already-framed face image without cropping."""
    if image is None or image.size == 0:
        raise ValueError("Cannot process an empty photo")
    return ProcessedPhoto(image=_resize(image, final_size, final_size))

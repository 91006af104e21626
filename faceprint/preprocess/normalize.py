"""Deterministic face-crop normalization into the embedding model's input layout."""

from __future__ import annotations

import logging

import cv2
import numpy as np

LOGGER = logging.getLogger("faceprint.preprocess.normalize")

# Perceptual luma weights for RGB input; fixed so every caller produces the same plane.
LUMA_WEIGHTS = np.array([0.2989, 0.5870, 0.1140], dtype=np.float32)
NUM_BINS = 256


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Collapse an RGB (or RGBA) image to a uint8 luma plane.

    Single-channel input is rounded and clipped but otherwise left alone.
    """
    pixels = np.asarray(image, dtype=np.float32)
    if pixels.ndim == 3 and pixels.shape[2] == 1:
        pixels = pixels[:, :, 0]
    if pixels.ndim == 3:
        if pixels.shape[2] < 3:
            raise ValueError(f"Expected RGB image, got shape {image.shape}")
        pixels = pixels[:, :, :3] @ LUMA_WEIGHTS
    elif pixels.ndim != 2:
        raise ValueError(f"Expected 2D or 3D image, got shape {image.shape}")
    return np.clip(np.floor(pixels + 0.5), 0, 255).astype(np.uint8)


def equalization_table(gray: np.ndarray) -> np.ndarray:
    """Histogram-equalization lookup table (256 entries, uint8) for a luma plane."""
    hist = np.bincount(gray.reshape(-1), minlength=NUM_BINS).astype(np.int64)
    cdf = np.cumsum(hist)
    total = int(gray.size)
    nonzero = cdf[cdf > 0]
    cdf_min = int(nonzero[0]) if nonzero.size else 0
    denom = total - cdf_min
    if denom <= 0:
        # Single-intensity plane: no spread to redistribute.
        return np.zeros(NUM_BINS, dtype=np.uint8)
    scaled = (cdf - cdf_min).astype(np.float64) / denom * 255.0
    return np.clip(np.floor(scaled + 0.5), 0, 255).astype(np.uint8)


def equalize_histogram(gray: np.ndarray) -> np.ndarray:
    return equalization_table(gray)[gray]


class ImageNormalizer:
    """Resize, grayscale, equalize and replicate a face crop into a planar tensor.

    The output is a flat float32 array of ``3 * size * size`` values in
    ``[0, 255]``: three identical channel planes, each row-major. The
    order (equalize the single luma plane, then replicate) matters for
    compatibility with previously stored signatures.
    """

    def __init__(self, input_size: int = 112) -> None:
        self.input_size = int(input_size)

    @property
    def tensor_length(self) -> int:
        return 3 * self.input_size * self.input_size

    def normalize(self, image: np.ndarray) -> np.ndarray:
        if image is None or image.size == 0:
            raise ValueError("Cannot normalize an empty image")
        size = self.input_size
        resized = cv2.resize(
            np.asarray(image, dtype=np.float32),
            (size, size),
            interpolation=cv2.INTER_LINEAR,
        )
        gray = to_grayscale(resized)
        equalized = equalize_histogram(gray)
        plane = equalized.astype(np.float32).reshape(-1)
        tensor = np.concatenate([plane, plane, plane])
        LOGGER.debug(
            "Normalized crop %s -> tensor len=%d range=[%.0f, %.0f]",
            image.shape,
            tensor.size,
            float(tensor.min()),
            float(tensor.max()),
        )
        return tensor

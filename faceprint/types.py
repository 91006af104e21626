"""Common dataclasses and helpers used across the faceprint package."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

# Geometry is expressed in pixels of the frame the detector ran on.


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned detector box: top-left corner plus size."""

    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class FrameSize:
    width: int
    height: int

    @classmethod
    def of(cls, image: np.ndarray) -> "FrameSize":
        height, width = image.shape[:2]
        return cls(width=int(width), height=int(height))


@dataclass(frozen=True)
class CropRegion:
    """Integer crop rectangle guaranteed to lie inside its frame."""

    origin_x: int
    origin_y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.origin_x + self.width

    @property
    def bottom(self) -> int:
        return self.origin_y + self.height

    def fits(self, frame: FrameSize, min_size: int = 1) -> bool:
        return (
            self.origin_x >= 0
            and self.origin_y >= 0
            and self.width >= min_size
            and self.height >= min_size
            and self.right < frame.width
            and self.bottom < frame.height
        )

    def slice(self, image: np.ndarray) -> np.ndarray:
        """Return the view of `image` covered by this region."""
        return image[self.origin_y : self.bottom, self.origin_x : self.right]


@dataclass(frozen=True)
class FaceDetection:
    """Single detector output: box plus confidence."""

    bounds: BoundingBox
    confidence: float


@dataclass
class RegisteredIdentity:
    """Stored identity record; `signature` is always the post-processed vector."""

    id: str
    name: str
    signature: np.ndarray
    created_at: int
    photo_ref: Optional[str] = None

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "embedding": np.asarray(self.signature, dtype=np.float32).tolist(),
            "photo_path": self.photo_ref,
            "timestamp": int(self.created_at),
        }


@dataclass(frozen=True)
class MatchResult:
    similarity: float
    distance: float
    is_match: bool
    confidence_percent: int

    @classmethod
    def from_similarity(cls, similarity: float, threshold: float) -> "MatchResult":
        similarity = float(similarity)
        return cls(
            similarity=similarity,
            distance=1.0 - similarity,
            is_match=similarity >= threshold,
            confidence_percent=round_half_up(similarity * 100.0),
        )


def l2_normalize(vec: np.ndarray, eps: float = 0.0) -> np.ndarray:
    """L2-normalize the input vector; vectors with norm <= eps pass through."""
    norm = np.linalg.norm(vec)
    if norm <= eps:
        return vec
    return vec / norm


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded toward +inf."""
    return int(math.floor(value + 0.5))

"""Padded, bounds-safe face crop computation."""

from __future__ import annotations

import logging
import math
from typing import Optional

from faceprint.config import PipelineConfig
from faceprint.errors import GeometryError
from faceprint.types import BoundingBox, CropRegion, FrameSize, round_half_up

LOGGER = logging.getLogger("faceprint.preprocess.crop")


class CropRegionCalculator:
    """Turns noisy detector boxes into crop rectangles that always fit the frame.

    The calculator is stateless: every call clamps the padded box into the frame,
    enforces a minimum size and a safety margin against the right/bottom edges,
    and falls back to a centered square when the result is still unusable.
    """

    def __init__(self, config: Optional[PipelineConfig] = None) -> None:
        self.config = config or PipelineConfig()

    def compute(self, bounds: BoundingBox, frame: FrameSize) -> CropRegion:
        try:
            region = self._clamped_region(bounds, frame)
        except GeometryError as exc:
            LOGGER.warning("Degenerate crop input (%s); using centered fallback", exc)
            return self.fallback(frame)

        if not region.fits(frame, min_size=self.config.min_crop_size):
            LOGGER.warning(
                "Invalid crop region %s for frame %dx%d; using centered fallback",
                region,
                frame.width,
                frame.height,
            )
            return self.fallback(frame)
        LOGGER.debug("Crop region %s for bounds %s frame %dx%d", region, bounds, frame.width, frame.height)
        return region

    def fallback(self, frame: FrameSize) -> CropRegion:
        """Centered square covering `fallback_fraction` of the smaller frame side."""
        margin = self.config.safety_margin
        size = int(math.floor(min(frame.width, frame.height) * self.config.fallback_fraction))
        size = max(size, 0)
        center_x = frame.width // 2
        center_y = frame.height // 2
        origin_x = max(0, int(math.floor(center_x - size / 2)))
        origin_y = max(0, int(math.floor(center_y - size / 2)))
        width = size
        height = size
        if origin_x + width >= frame.width:
            width = max(0, frame.width - origin_x - margin)
        if origin_y + height >= frame.height:
            height = max(0, frame.height - origin_y - margin)
        region = CropRegion(origin_x=origin_x, origin_y=origin_y, width=width, height=height)
        LOGGER.debug("Fallback crop %s for frame %dx%d", region, frame.width, frame.height)
        return region

    def _clamped_region(self, bounds: BoundingBox, frame: FrameSize) -> CropRegion:
        cfg = self.config
        values = (bounds.x, bounds.y, bounds.width, bounds.height)
        if not all(math.isfinite(v) for v in values):
            raise GeometryError(f"non-finite bounds {bounds}")
        if bounds.width <= 0 or bounds.height <= 0:
            raise GeometryError(f"non-positive box size {bounds.width}x{bounds.height}")
        if frame.width <= 0 or frame.height <= 0:
            raise GeometryError(f"non-positive frame size {frame.width}x{frame.height}")

        pad_x = bounds.width * cfg.crop_padding
        pad_y = bounds.height * cfg.crop_padding
        padded_x = bounds.x - pad_x
        padded_y = bounds.y - pad_y
        padded_w = bounds.width + 2 * pad_x
        padded_h = bounds.height + 2 * pad_y

        # Clamping the origin eats into the size instead of shifting the box.
        origin_x = max(0.0, padded_x)
        origin_y = max(0.0, padded_y)
        padded_w -= origin_x - padded_x
        padded_h -= origin_y - padded_y
        if padded_w <= 0 or padded_h <= 0:
            raise GeometryError(f"padded box {bounds} lies outside the frame")

        max_w = frame.width - origin_x
        max_h = frame.height - origin_y
        if max_w <= 0 or max_h <= 0:
            raise GeometryError(f"box origin ({origin_x}, {origin_y}) is past the frame edge")
        width = min(padded_w, max_w)
        height = min(padded_h, max_h)
        if width < cfg.min_crop_size or height < cfg.min_crop_size:
            LOGGER.debug("Crop %.1fx%.1f below minimum %d; growing within bounds", width, height, cfg.min_crop_size)
        width = min(max(width, cfg.min_crop_size), max_w)
        height = min(max(height, cfg.min_crop_size), max_h)

        ox = round_half_up(origin_x)
        oy = round_half_up(origin_y)
        w = round_half_up(width)
        h = round_half_up(height)

        margin = cfg.safety_margin
        max_dim = min(frame.width, frame.height) - margin
        w = min(w, max_dim)
        h = min(h, max_dim)
        if ox + w > frame.width - margin or oy + h > frame.height - margin:
            LOGGER.debug("Crop too close to the frame edge; applying %dpx safety margin", margin)
            w = min(w, frame.width - margin - ox)
            h = min(h, frame.height - margin - oy)
        return CropRegion(origin_x=ox, origin_y=oy, width=w, height=h)

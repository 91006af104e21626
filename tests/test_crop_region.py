import math

import pytest

from faceprint.config import PipelineConfig
from faceprint.preprocess.crop import CropRegionCalculator
from faceprint.types import BoundingBox, CropRegion, FrameSize


FRAMES = [FrameSize(640, 480), FrameSize(1080, 1920), FrameSize(320, 240), FrameSize(100, 100)]
BOXES = [
    BoundingBox(100, 100, 200, 200),
    BoundingBox(0, 0, 100, 100),
    BoundingBox(-40, -30, 120, 90),
    BoundingBox(300, 200, 10, 10),
    BoundingBox(630, 470, 50, 50),
    BoundingBox(-1000, -1000, 5000, 5000),
    BoundingBox(900, 900, 400, 400),
    BoundingBox(-500, -500, 1, 1),
    BoundingBox(50, 60, 0, 0),
    BoundingBox(10, 10, -20, 40),
    BoundingBox(math.nan, 10, 50, 50),
]


def _assert_valid(region: CropRegion, frame: FrameSize) -> None:
    assert region.origin_x >= 0
    assert region.origin_y >= 0
    assert region.origin_x + region.width < frame.width
    assert region.origin_y + region.height < frame.height
    assert region.width >= 50
    assert region.height >= 50


@pytest.mark.parametrize("frame", FRAMES)
@pytest.mark.parametrize("bounds", BOXES)
def test_crop_region_always_inside_frame(bounds, frame):
    region = CropRegionCalculator().compute(bounds, frame)
    _assert_valid(region, frame)


def test_padding_applied_on_each_side():
    region = CropRegionCalculator().compute(BoundingBox(100, 100, 200, 200), FrameSize(1080, 1920))
    assert region == CropRegion(origin_x=60, origin_y=60, width=280, height=280)


def test_pathological_box_uses_centered_fallback():
    frame = FrameSize(640, 480)
    region = CropRegionCalculator().compute(BoundingBox(-500, -500, 1, 1), frame)
    assert region == CropRegion(origin_x=200, origin_y=120, width=240, height=240)


def test_fallback_triggers_when_margin_leaves_too_little_room():
    frame = FrameSize(640, 480)
    calculator = CropRegionCalculator()
    region = calculator.compute(BoundingBox(630, 470, 50, 50), frame)
    assert region == calculator.fallback(frame)


def test_small_box_grows_to_minimum_size():
    region = CropRegionCalculator().compute(BoundingBox(300, 200, 10, 10), FrameSize(640, 480))
    assert region == CropRegion(origin_x=298, origin_y=198, width=50, height=50)


def test_clamped_origin_shrinks_size_instead_of_shifting():
    # Padded box starts at (-64, -48); the clamped part is cut off, not moved.
    region = CropRegionCalculator().compute(BoundingBox(-40, -30, 120, 90), FrameSize(640, 480))
    assert (region.origin_x, region.origin_y) == (0, 0)
    assert region.width == 104
    assert region.height == 78


def test_oversized_box_respects_safety_margin():
    region = CropRegionCalculator().compute(BoundingBox(-1000, -1000, 5000, 5000), FrameSize(640, 480))
    assert region == CropRegion(origin_x=0, origin_y=0, width=475, height=475)


def test_config_overrides_padding_and_margin():
    config = PipelineConfig(crop_padding=0.0, safety_margin=0)
    region = CropRegionCalculator(config).compute(BoundingBox(100, 100, 200, 200), FrameSize(1080, 1920))
    assert region == CropRegion(origin_x=100, origin_y=100, width=200, height=200)

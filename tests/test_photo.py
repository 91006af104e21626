import numpy as np

from faceprint.preprocess.crop import CropRegionCalculator
from faceprint.preprocess.photo import process_face_photo, process_gallery_photo
from faceprint.types import BoundingBox, CropRegion, FrameSize


def _photo(height: int = 480, width: int = 640) -> np.ndarray:
    rng = np.random.default_rng(0)
    return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)


def test_face_photo_is_cropped_and_resized():
    processed = process_face_photo(_photo(), BoundingBox(200, 150, 200, 200), CropRegionCalculator(), final_size=112)
    assert processed.image.shape == (112, 112, 3)
    assert processed.crop == CropRegion(origin_x=160, origin_y=110, width=280, height=280)


def test_photo_is_mapped_to_preview_space_first():
    # Photo at twice the preview resolution; bounds are in preview pixels.
    processed = process_face_photo(
        _photo(960, 1280),
        BoundingBox(200, 150, 200, 200),
        CropRegionCalculator(),
        preview=FrameSize(640, 480),
    )
    assert processed.crop == CropRegion(origin_x=160, origin_y=110, width=280, height=280)


def test_mirrored_capture_is_flipped():
    photo = _photo()
    bounds = BoundingBox(200, 150, 200, 200)
    plain = process_face_photo(photo, bounds, CropRegionCalculator())
    mirrored = process_face_photo(photo, bounds, CropRegionCalculator(), mirrored=True)
    assert np.array_equal(mirrored.image, plain.image[:, ::-1])


def test_gallery_photo_is_resized_without_crop():
    processed = process_gallery_photo(_photo(), final_size=112)
    assert processed.image.shape == (112, 112, 3)
    assert processed.crop is None

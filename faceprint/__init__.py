"""
Core package init for faceprint.

Face signature extraction and matching: crop geometry, image normalization,
ArcFace inference, L2 post-processing and cosine matching.
"""

__all__ = [
    "config",
    "detectors",
    "errors",
    "io_utils",
    "pipeline",
    "preprocess",
    "recognition",
    "types",
]

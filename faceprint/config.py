"""Pipeline configuration with documented defaults."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from faceprint.io_utils import load_yaml

LOGGER = logging.getLogger("faceprint.config")


@dataclass(frozen=True)
class PipelineConfig:
    # Cosine similarity at or above this value is a match.
    similarity_threshold: float = 0.6
    # Fraction of the box width/height added on each side before cropping.
    crop_padding: float = 0.2
    min_crop_size: int = 50
    # Pixels kept clear between the crop and the right/bottom frame edge.
    safety_margin: int = 5
    # Side of the centered fallback crop as a fraction of the smaller frame side.
    fallback_fraction: float = 0.5
    # Engine input is [1, 3, input_size, input_size].
    input_size: int = 112
    embedding_dim: int = 512
    # Side length of the face crop handed to the normalizer.
    final_size: int = 112
    detection_threshold: float = 0.5
    verify_interval_ms: float = 4000.0
    problematic_similarity: float = 0.7

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PipelineConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            LOGGER.warning("Ignoring unknown pipeline config keys: %s", unknown)
        return cls(**{key: value for key, value in data.items() if key in known})

    def with_overrides(self, **overrides: Any) -> "PipelineConfig":
        """Return a copy with every non-None override applied."""
        values: Dict[str, Any] = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **values)


def load_pipeline_config(path: Optional[Path]) -> PipelineConfig:
    """Load a pipeline config YAML; a missing path yields the defaults."""
    if path is None or not path.exists():
        if path is not None:
            LOGGER.info("Pipeline config %s not found; using defaults", path)
        return PipelineConfig()
    data = load_yaml(path)
    section = data.get("pipeline", data)
    return PipelineConfig.from_dict(section)

"""ArcFace inference engine, one-time loader and embedding post-processing."""

from __future__ import annotations

import logging
import os
import platform
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import onnxruntime as ort

from faceprint.errors import DimensionMismatch, EngineUnavailable
from faceprint.preprocess.normalize import ImageNormalizer
from faceprint.types import l2_normalize

LOGGER = logging.getLogger("faceprint.recognition.embed")

DEFAULT_MODEL = "arcface_r100_v1"


def _default_providers() -> Tuple[str, ...]:
    """Choose default ONNX providers based on platform."""
    system = platform.system()
    machine = platform.machine().lower()
    if system == "Darwin" and machine in {"arm64", "aarch64"}:
        return ("CoreMLExecutionProvider", "CPUExecutionProvider")
    return ("CPUExecutionProvider",)


class ArcFaceEngine:
    """ONNX Runtime session for an ArcFace recognizer.

    Takes a float32 ``[1, 3, 112, 112]`` tensor and returns the raw ``[1, D]``
    output flattened to a vector. A path ending in ``.onnx`` is opened directly;
    anything else is resolved through the InsightFace model zoo.
    """

    def __init__(
        self,
        model_path: Optional[str] = None,
        providers: Optional[Sequence[str]] = None,
        input_size: int = 112,
    ) -> None:
        os.environ.setdefault("OMP_NUM_THREADS", "2")
        os.environ.setdefault("MKL_NUM_THREADS", "2")
        os.environ.setdefault("ORT_INTRA_OP_NUM_THREADS", "2")

        provider_list: Tuple[str, ...]
        if providers is None:
            provider_list = _default_providers()
        else:
            provider_list = tuple(providers)
        resolved = str(Path(model_path).expanduser()) if model_path else DEFAULT_MODEL
        LOGGER.info("Loading ArcFace model %s providers=%s", resolved, provider_list)

        if resolved.endswith(".onnx"):
            if not Path(resolved).exists():
                raise FileNotFoundError(f"ArcFace model not found: {resolved}")
            session = ort.InferenceSession(resolved, providers=list(provider_list))
        else:
            try:
                from insightface.model_zoo import get_model
            except ImportError as exc:  # pragma: no cover - import guard
                raise RuntimeError(
                    "insightface is required to resolve model names. "
                    "Install it via `pip install insightface` or pass a .onnx path."
                ) from exc
            model = get_model(resolved, download=True, providers=list(provider_list))
            session = getattr(model, "session", None)
            if session is None:
                raise RuntimeError(f"Unable to load ArcFace model {resolved} via insightface")

        self.session = session
        self.providers = provider_list
        self.input_shape = (1, 3, int(input_size), int(input_size))
        self.input_name = session.get_inputs()[0].name
        self.output_name = session.get_outputs()[0].name
        LOGGER.info(
            "ArcFace model ready input=%s output=%s backend=%s",
            self.input_name,
            self.output_name,
            session.get_providers()[0],
        )

    def run(self, tensor: np.ndarray) -> np.ndarray:
        feed = np.asarray(tensor, dtype=np.float32).reshape(self.input_shape)
        outputs = self.session.run([self.output_name], {self.input_name: feed})
        return np.asarray(outputs[0], dtype=np.float32).reshape(-1)

    def model_info(self) -> Dict[str, List[str]]:
        return {
            "input_names": [node.name for node in self.session.get_inputs()],
            "output_names": [node.name for node in self.session.get_outputs()],
        }


class EngineLoader:
    """Creates the inference engine once and shares it between callers.

    Concurrent callers that arrive while a load is in flight wait on the lock
    and receive the same handle. A failed load is not remembered, so the next
    call retries.
    """

    def __init__(self, factory: Callable[[], Any]) -> None:
        self._factory = factory
        self._engine: Any = None
        self._lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._engine is not None

    def get(self) -> Any:
        engine = self._engine
        if engine is not None:
            return engine
        with self._lock:
            if self._engine is None:
                try:
                    self._engine = self._factory()
                except Exception as exc:
                    LOGGER.error("Inference engine failed to load: %s", exc)
                    raise EngineUnavailable(f"Inference engine failed to load: {exc}") from exc
                if self._engine is None:
                    raise EngineUnavailable("Inference engine factory returned no engine")
            return self._engine

    def model_info(self) -> Optional[Dict[str, List[str]]]:
        engine = self._engine
        if engine is None or not hasattr(engine, "model_info"):
            return None
        return engine.model_info()

    def clear(self) -> None:
        with self._lock:
            if self._engine is not None:
                LOGGER.info("Releasing inference engine")
            self._engine = None


class EmbeddingPostProcessor:
    """L2-normalizes raw engine output into a unit-length signature."""

    def __init__(self, embedding_dim: Optional[int] = 512) -> None:
        self.embedding_dim = embedding_dim

    def post_process(self, raw: np.ndarray) -> np.ndarray:
        vec = np.asarray(raw, dtype=np.float32).reshape(-1)
        if self.embedding_dim is not None and vec.size != self.embedding_dim:
            raise DimensionMismatch(
                f"Engine returned {vec.size} values, expected {self.embedding_dim}"
            )
        # An all-zero vector has no direction; it is passed through unchanged.
        return l2_normalize(vec)


class FaceEmbedder:
    """Face crop -> normalized tensor -> engine -> signature."""

    def __init__(
        self,
        loader: EngineLoader,
        normalizer: Optional[ImageNormalizer] = None,
        post_processor: Optional[EmbeddingPostProcessor] = None,
    ) -> None:
        self.loader = loader
        self.normalizer = normalizer or ImageNormalizer()
        self.post_processor = post_processor or EmbeddingPostProcessor()

    def embed(self, face_image: np.ndarray) -> np.ndarray:
        """Compute the L2-normalized signature for a cropped face image."""
        engine = self.loader.get()
        tensor = self.normalizer.normalize(face_image)
        raw = engine.run(tensor)
        signature = self.post_processor.post_process(raw)
        LOGGER.debug("Embedded face crop %s -> norm=%.6f", face_image.shape, float(np.linalg.norm(signature)))
        return signature

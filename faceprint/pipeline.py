"""Registration, verification and identification on top of the embedding stages."""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Tuple

import numpy as np

from faceprint.config import PipelineConfig
from faceprint.detectors.face_rfb import decode_predictions, primary_face
from faceprint.errors import NoFaceDetected
from faceprint.preprocess.crop import CropRegionCalculator
from faceprint.preprocess.normalize import ImageNormalizer
from faceprint.preprocess.photo import process_face_photo, process_gallery_photo
from faceprint.recognition.embed_arcface import EmbeddingPostProcessor, EngineLoader, FaceEmbedder
from faceprint.recognition.identity_store import IdentityStore, generate_identity_id, now_ms
from faceprint.recognition.matcher import SimilarityMatcher
from faceprint.types import BoundingBox, FaceDetection, FrameSize, MatchResult, RegisteredIdentity

LOGGER = logging.getLogger("faceprint.pipeline")


class VerificationThrottle:
    """Lets a verification attempt through at most once per interval."""

    def __init__(self, min_interval_ms: float = 4000.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.min_interval_ms = float(min_interval_ms)
        self._clock = clock
        self._last: Optional[float] = None

    def ready(self) -> bool:
        now = self._clock()
        if self._last is not None and (now - self._last) * 1000.0 <= self.min_interval_ms:
            return False
        self._last = now
        return True

    def reset(self) -> None:
        self._last = None


class FacePipeline:
    """Crop -> normalize -> infer -> post-process -> match, wired from one config.

    Constructed once at startup with a shared `EngineLoader`; every call is
    independent and keeps no per-request state.
    """

    def __init__(
        self,
        loader: EngineLoader,
        store: Optional[IdentityStore] = None,
        config: Optional[PipelineConfig] = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.store = store
        self.calculator = CropRegionCalculator(self.config)
        self.embedder = FaceEmbedder(
            loader,
            normalizer=ImageNormalizer(self.config.input_size),
            post_processor=EmbeddingPostProcessor(self.config.embedding_dim),
        )
        self.matcher = SimilarityMatcher(self.config.similarity_threshold)
        # Rate limit for callers driving verification from a live feed.
        self.throttle = VerificationThrottle(self.config.verify_interval_ms)

    def _require_store(self) -> IdentityStore:
        if self.store is None:
            raise RuntimeError("FacePipeline was created without an identity store")
        return self.store

    def embed_aligned(self, face_image: np.ndarray) -> np.ndarray:
        """Signature for an image that is already just the face."""
        processed = process_gallery_photo(face_image, self.config.final_size)
        return self.embedder.embed(processed.image)

    def embed_face(
        self,
        image: np.ndarray,
        bounds: BoundingBox,
        preview: Optional[FrameSize] = None,
        mirrored: bool = False,
    ) -> np.ndarray:
        """Signature for the face at `bounds` inside a full frame."""
        processed = process_face_photo(
            image,
            bounds,
            self.calculator,
            preview=preview,
            mirrored=mirrored,
            final_size=self.config.final_size,
        )
        return self.embedder.embed(processed.image)

    def detect_primary(self, predictions: np.ndarray, frame: FrameSize) -> FaceDetection:
        detections = decode_predictions(predictions, frame, self.config.detection_threshold)
        face = primary_face(detections)
        if face is None:
            raise NoFaceDetected("No faces detected in the selected image")
        LOGGER.info("Using primary detected face %s (confidence=%.3f)", face.bounds, face.confidence)
        return face

    def register(
        self,
        name: str,
        image: np.ndarray,
        bounds: BoundingBox,
        photo_ref: Optional[str] = None,
        identity_id: Optional[str] = None,
        preview: Optional[FrameSize] = None,
        mirrored: bool = False,
    ) -> RegisteredIdentity:
        """Embed the face and persist it; nothing is written if any stage fails."""
        store = self._require_store()
        signature = self.embed_face(image, bounds, preview=preview, mirrored=mirrored)
        identity = RegisteredIdentity(
            id=identity_id or generate_identity_id(),
            name=name,
            signature=signature,
            created_at=now_ms(),
            photo_ref=photo_ref,
        )
        store.save(identity)
        return identity

    def register_from_detections(
        self,
        name: str,
        image: np.ndarray,
        predictions: np.ndarray,
        photo_ref: Optional[str] = None,
        identity_id: Optional[str] = None,
    ) -> RegisteredIdentity:
        """Register a gallery image using the most confident detector output."""
        face = self.detect_primary(predictions, FrameSize.of(image))
        return self.register(name, image, face.bounds, photo_ref=photo_ref, identity_id=identity_id)

    def verify(
        self,
        identity_id: str,
        image: np.ndarray,
        bounds: BoundingBox,
        preview: Optional[FrameSize] = None,
        mirrored: bool = False,
    ) -> MatchResult:
        """Compare the face at `bounds` against one stored identity."""
        identity = self._require_store().get(identity_id)
        query = self.embed_face(image, bounds, preview=preview, mirrored=mirrored)
        result = self.matcher.compare(query, identity.signature)
        LOGGER.info(
            "Verification against %s (%s): %s (%d%% match)",
            identity.name,
            identity.id,
            "verified" if result.is_match else "not verified",
            result.confidence_percent,
        )
        return result

    def verify_from_detections(self, identity_id: str, image: np.ndarray, predictions: np.ndarray) -> MatchResult:
        face = self.detect_primary(predictions, FrameSize.of(image))
        return self.verify(identity_id, image, face.bounds)

    def identify(
        self,
        image: np.ndarray,
        bounds: BoundingBox,
        preview: Optional[FrameSize] = None,
        mirrored: bool = False,
    ) -> Optional[Tuple[RegisteredIdentity, MatchResult]]:
        """Nearest registered identity to the face at `bounds`, or None if the store is empty."""
        identities: List[RegisteredIdentity] = self._require_store().list_identities()
        if not identities:
            LOGGER.info("No registered identities to compare against")
            return None
        query = self.embed_face(image, bounds, preview=preview, mirrored=mirrored)
        return self.matcher.best_match(query, identities)

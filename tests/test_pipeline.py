import numpy as np
import pytest

pytest.importorskip("pyarrow")

from faceprint.config import PipelineConfig
from faceprint.errors import EngineUnavailable, NoFaceDetected
from faceprint.pipeline import FacePipeline, VerificationThrottle
from faceprint.recognition.embed_arcface import EngineLoader
from faceprint.recognition.identity_store import IdentityStore
from faceprint.types import BoundingBox


class FakeArcFace:
    """Pools the first tensor plane to 16x16 and projects it to 512 dims."""

    def __init__(self, seed: int = 0) -> None:
        rng = np.random.default_rng(seed)
        self.projection = rng.normal(size=(512, 256)).astype(np.float32)
        self.tensors = []

    def run(self, tensor: np.ndarray) -> np.ndarray:
        self.tensors.append(tensor)
        plane = tensor[: 112 * 112].reshape(112, 112)
        pooled = plane.reshape(16, 7, 16, 7).mean(axis=(1, 3)).reshape(-1)
        return self.projection @ (pooled - 127.5)


def _frame(seed: int) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(480, 640, 3), dtype=np.uint8)


FACE = BoundingBox(200, 150, 200, 200)


@pytest.fixture
def engine():
    return FakeArcFace()


@pytest.fixture
def pipeline(tmp_path, engine):
    return FacePipeline(EngineLoader(lambda: engine), store=IdentityStore(tmp_path / "ids.parquet"))


def test_engine_receives_contract_tensor(pipeline, engine):
    signature = pipeline.embed_face(_frame(1), FACE)
    assert signature.shape == (512,)
    assert abs(float(np.linalg.norm(signature)) - 1.0) < 1e-4
    tensor = engine.tensors[-1]
    assert tensor.dtype == np.float32
    assert tensor.size == 3 * 112 * 112
    assert 0.0 <= tensor.min() and tensor.max() <= 255.0


def test_register_then_verify_same_face(pipeline):
    image = _frame(1)
    identity = pipeline.register("Alice", image, FACE, photo_ref="alice.jpg", identity_id="face_alice")
    assert identity.id == "face_alice"
    assert pipeline.store.get("face_alice").name == "Alice"

    result = pipeline.verify("face_alice", image, FACE)
    assert result.is_match
    assert result.similarity == pytest.approx(1.0, abs=1e-5)


def test_verify_different_face_is_rejected(pipeline):
    pipeline.register("Alice", _frame(1), FACE, identity_id="face_alice")
    result = pipeline.verify("face_alice", _frame(2), FACE)
    assert not result.is_match


def test_identify_returns_nearest_registered_identity(pipeline):
    pipeline.register("Alice", _frame(1), FACE, identity_id="face_alice")
    pipeline.register("Bob", _frame(2), FACE, identity_id="face_bob")
    identity, result = pipeline.identify(_frame(2), FACE)
    assert identity.id == "face_bob"
    assert result.is_match


def test_identify_with_empty_store(pipeline):
    assert pipeline.identify(_frame(1), FACE) is None


def test_engine_failure_writes_nothing(tmp_path):
    def broken():
        raise RuntimeError("onnx session could not be created")

    store = IdentityStore(tmp_path / "ids.parquet")
    pipeline = FacePipeline(EngineLoader(broken), store=store)
    with pytest.raises(EngineUnavailable):
        pipeline.register("Alice", _frame(1), FACE)
    assert not (tmp_path / "ids.parquet").exists()


def test_register_from_detections_uses_most_confident_face(pipeline):
    image = _frame(3)
    predictions = np.array(
        [
            [
                [0.05, 0.05, 0.15, 0.15, 0.55, 1.0],
                [200 / 640, 150 / 480, 400 / 640, 350 / 480, 0.97, 1.0],
            ]
        ],
        dtype=np.float32,
    )
    pipeline.register_from_detections("Carol", image, predictions, identity_id="face_carol")
    result = pipeline.verify("face_carol", image, FACE)
    assert result.similarity == pytest.approx(1.0, abs=1e-3)


def test_verify_from_detections_and_aligned_embedding(pipeline):
    image = _frame(5)
    pipeline.register("Erin", image, FACE, identity_id="face_erin")
    predictions = np.array([[[200 / 640, 150 / 480, 400 / 640, 350 / 480, 0.9, 1.0]]], dtype=np.float32)
    assert pipeline.verify_from_detections("face_erin", image, predictions).is_match

    aligned = pipeline.embed_aligned(image[110:390, 160:440])
    assert abs(float(np.linalg.norm(aligned)) - 1.0) < 1e-4
    assert pipeline.matcher.compare(aligned, pipeline.store.get("face_erin").signature).is_match


def test_register_without_detections_fails(pipeline):
    predictions = np.array([[[0.1, 0.1, 0.5, 0.5, 0.3, 1.0]]], dtype=np.float32)
    with pytest.raises(NoFaceDetected):
        pipeline.register_from_detections("Dave", _frame(4), predictions)
    assert pipeline.store.count() == 0


def test_threshold_comes_from_config(tmp_path, engine):
    config = PipelineConfig(similarity_threshold=1.01)
    pipeline = FacePipeline(EngineLoader(lambda: engine), store=IdentityStore(tmp_path / "ids.parquet"), config=config)
    pipeline.register("Alice", _frame(1), FACE, identity_id="face_alice")
    assert not pipeline.verify("face_alice", _frame(1), FACE).is_match


def test_verification_throttle():
    now = [0.0]
    throttle = VerificationThrottle(min_interval_ms=4000, clock=lambda: now[0])
    assert throttle.ready()
    now[0] = 3.9
    assert not throttle.ready()
    now[0] = 4.5
    assert throttle.ready()
    throttle.reset()
    assert throttle.ready()


def test_pipeline_throttle_uses_configured_interval(engine):
    pipeline = FacePipeline(EngineLoader(lambda: engine), config=PipelineConfig(verify_interval_ms=1500))
    assert pipeline.throttle.min_interval_ms == 1500
    assert pipeline.store is None
    with pytest.raises(RuntimeError):
        pipeline.identify(_frame(1), FACE)

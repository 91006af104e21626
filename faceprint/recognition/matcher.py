"""Cosine similarity matcher with threshold decision and nearest-neighbour lookup."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

import numpy as np

from faceprint.errors import DimensionMismatch
from faceprint.types import MatchResult, RegisteredIdentity, l2_normalize

LOGGER = logging.getLogger("faceprint.recognition.matcher")


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity; a zero-norm vector on either side scores 0."""
    a = np.asarray(a, dtype=np.float64).reshape(-1)
    b = np.asarray(b, dtype=np.float64).reshape(-1)
    if a.shape != b.shape:
        raise DimensionMismatch(f"Embedding lengths do not match: {a.size} vs {b.size}")
    # Re-normalize so callers that pass raw vectors still get a true cosine.
    a = l2_normalize(a)
    b = l2_normalize(b)
    norm_a = float(np.linalg.norm(a))
    norm_b = float(np.linalg.norm(b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


class SimilarityMatcher:
    """Applies a single global similarity threshold (inclusive)."""

    def __init__(self, threshold: float = 0.6) -> None:
        self.threshold = float(threshold)

    def evaluate(self, similarity: float) -> MatchResult:
        return MatchResult.from_similarity(similarity, self.threshold)

    def compare(self, a: np.ndarray, b: np.ndarray) -> MatchResult:
        similarity = cosine_similarity(a, b)
        if not np.any(a) or not np.any(b):
            # A zero vector carries no direction: never a match, whatever the threshold.
            return MatchResult(similarity=0.0, distance=1.0, is_match=False, confidence_percent=0)
        result = self.evaluate(similarity)
        LOGGER.debug(
            "Comparison %s similarity=%.6f (%d%%) distance=%.6f threshold=%.2f",
            "MATCH" if result.is_match else "NO MATCH",
            result.similarity,
            result.confidence_percent,
            result.distance,
            self.threshold,
        )
        return result

    def rank(
        self,
        query: np.ndarray,
        identities: Iterable[RegisteredIdentity],
        k: Optional[int] = None,
    ) -> List[Tuple[RegisteredIdentity, MatchResult]]:
        """Identities ordered by similarity to `query`, ties kept in input order."""
        scored = [(identity, self.compare(query, identity.signature)) for identity in identities]
        scored.sort(key=lambda item: item[1].similarity, reverse=True)
        if k is not None:
            scored = scored[:k]
        return scored

    def best_match(
        self,
        query: np.ndarray,
        identities: Iterable[RegisteredIdentity],
    ) -> Optional[Tuple[RegisteredIdentity, MatchResult]]:
        """Nearest stored identity, whether or not it clears the threshold."""
        ranked = self.rank(query, identities, k=1)
        if not ranked:
            return None
        identity, result = ranked[0]
        LOGGER.info(
            "Best match %s (%s) similarity=%.4f match=%s",
            identity.name,
            identity.id,
            result.similarity,
            result.is_match,
        )
        return identity, result

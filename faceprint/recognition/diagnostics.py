"""Pairwise similarity analysis across registered identities."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence

import pandas as pd

from faceprint.recognition.matcher import cosine_similarity
from faceprint.types import RegisteredIdentity

LOGGER = logging.getLogger("faceprint.recognition.diagnostics")


@dataclass
class SimilarityPair:
    first: RegisteredIdentity
    second: RegisteredIdentity
    similarity: float
    status: str

    @property
    def is_problematic(self) -> bool:
        return self.status == "problematic"


def _status(similarity: float, problematic_th: float, moderate_th: float) -> str:
    if similarity > problematic_th:
        return "problematic"
    if similarity > moderate_th:
        return "moderate"
    return "safe"


def analyze_similarities(
    identities: Sequence[RegisteredIdentity],
    problematic_th: float = 0.7,
    moderate_th: float = 0.6,
) -> List[SimilarityPair]:
    """Compare every pair of distinct identities, most similar first.

    Pairs above ``problematic_th`` are likely to cause false accepts between
    different people; pairs above ``moderate_th`` sit over the default match
    threshold.
    """
    pairs: List[SimilarityPair] = []
    for i, first in enumerate(identities):
        for second in identities[i + 1 :]:
            sim = cosine_similarity(first.signature, second.signature)
            pairs.append(SimilarityPair(first, second, sim, _status(sim, problematic_th, moderate_th)))
    pairs.sort(key=lambda pair: pair.similarity, reverse=True)
    return pairs


def summarize(pairs: Sequence[SimilarityPair]) -> Dict[str, int]:
    summary = {"total": len(pairs), "problematic": 0, "moderate": 0, "safe": 0}
    for pair in pairs:
        summary[pair.status] += 1
    return summary


def pairs_to_frame(pairs: Sequence[SimilarityPair]) -> pd.DataFrame:
    rows = [
        {
            "first_id": pair.first.id,
            "first_name": pair.first.name,
            "second_id": pair.second.id,
            "second_name": pair.second.name,
            "similarity": pair.similarity,
            "status": pair.status,
        }
        for pair in pairs
    ]
    return pd.DataFrame(
        rows,
        columns=["first_id", "first_name", "second_id", "second_name", "similarity", "status"],
    )


def log_similarity_analysis(pairs: Sequence[SimilarityPair]) -> None:
    if not pairs:
        LOGGER.info("No identity pairs to compare (need at least 2 registered identities)")
        return
    for pair in pairs:
        level = logging.WARNING if pair.is_problematic else logging.INFO
        LOGGER.log(
            level,
            "%s vs %s similarity=%.1f%% (%s)",
            pair.first.name,
            pair.second.name,
            pair.similarity * 100.0,
            pair.status,
        )
    summary = summarize(pairs)
    LOGGER.info(
        "Compared %d pairs: problematic=%d moderate=%d safe=%d",
        summary["total"],
        summary["problematic"],
        summary["moderate"],
        summary["safe"],
    )
    if summary["problematic"]:
        LOGGER.warning(
            "High-similarity pairs may cause false matches; consider re-registering "
            "those identities or raising the similarity threshold"
        )

#!/usr/bin/env python3
"""CLI for auditing registered identities for look-alike pairs."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from faceprint.config import load_pipeline_config
from faceprint.io_utils import ensure_dir, setup_logging
from faceprint.recognition.diagnostics import analyze_similarities, log_similarity_analysis, pairs_to_frame
from faceprint.recognition.identity_store import IdentityStore

LOGGER = logging.getLogger("scripts.analyze")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Pairwise similarity report for registered identities")
    parser.add_argument(
        "--store",
        type=Path,
        default=Path("data/identities.parquet"),
        help="Identity store parquet file",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("configs/pipeline.yaml"),
        help="Pipeline configuration YAML",
    )
    parser.add_argument("--output-csv", type=Path, default=None, help="Optional CSV report path")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    setup_logging()
    config = load_pipeline_config(args.config)

    identities = IdentityStore(args.store).list_identities()
    LOGGER.info("Loaded %d registered identities from %s", len(identities), args.store)
    for identity in identities:
        LOGGER.info(
            "%s id=%s registered_ms=%d dim=%d photo=%s",
            identity.name,
            identity.id,
            identity.created_at,
            identity.signature.size,
            identity.photo_ref or "N/A",
        )

    pairs = analyze_similarities(
        identities,
        problematic_th=config.problematic_similarity,
        moderate_th=config.similarity_threshold,
    )
    log_similarity_analysis(pairs)

    if args.output_csv is not None:
        ensure_dir(args.output_csv.parent)
        pairs_to_frame(pairs).to_csv(args.output_csv, index=False)
        LOGGER.info("Wrote similarity report %s", args.output_csv)


if __name__ == "__main__":
    main()

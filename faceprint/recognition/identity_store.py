"""Parquet-backed store of registered identities."""

from __future__ import annotations

import logging
import os
import secrets
import string
import time
from pathlib import Path
from typing import Dict, List

import numpy as np
import pandas as pd

from faceprint.errors import DuplicateIdentity, IdentityNotFound
from faceprint.io_utils import ensure_dir
from faceprint.types import RegisteredIdentity

LOGGER = logging.getLogger("faceprint.recognition.store")

COLUMNS = ["id", "name", "embedding", "photo_path", "timestamp"]
_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_identity_id() -> str:
    """Unique id of the form ``face_<epoch ms>_<9 base36 chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"face_{int(time.time() * 1000)}_{suffix}"


def now_ms() -> int:
    return int(time.time() * 1000)


class IdentityStore:
    """Reads and writes the registered-identity table.

    Every mutation rewrites the whole table through a temporary file and
    ``os.replace`` so a failed write never leaves a partial store behind.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def list_identities(self) -> List[RegisteredIdentity]:
        if not self.path.exists():
            return []
        df = pd.read_parquet(self.path)
        identities = [_row_to_identity(row) for _, row in df.iterrows()]
        LOGGER.debug("Loaded %d registered identities from %s", len(identities), self.path)
        return identities

    def get(self, identity_id: str) -> RegisteredIdentity:
        for identity in self.list_identities():
            if identity.id == identity_id:
                return identity
        raise IdentityNotFound(identity_id)

    def count(self) -> int:
        return len(self.list_identities())

    def is_name_taken(self, name: str) -> bool:
        wanted = name.lower()
        return any(identity.name.lower() == wanted for identity in self.list_identities())

    def save(self, identity: RegisteredIdentity) -> None:
        identities = self.list_identities()
        if any(existing.id == identity.id for existing in identities):
            raise DuplicateIdentity(f"Identity id already registered: {identity.id}")
        identities.append(identity)
        self._write(identities)
        LOGGER.info("Registered identity %s (%s)", identity.name, identity.id)

    def update(self, identity: RegisteredIdentity) -> None:
        identities = self.list_identities()
        for idx, existing in enumerate(identities):
            if existing.id == identity.id:
                identities[idx] = identity
                break
        else:
            raise IdentityNotFound(identity.id)
        self._write(identities)
        LOGGER.info("Updated identity %s (%s)", identity.name, identity.id)

    def delete(self, identity_id: str) -> None:
        identities = self.list_identities()
        remaining = [identity for identity in identities if identity.id != identity_id]
        if len(remaining) == len(identities):
            raise IdentityNotFound(identity_id)
        self._write(remaining)
        LOGGER.info("Deleted identity %s", identity_id)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
        LOGGER.info("Cleared identity store %s", self.path)

    def _write(self, identities: List[RegisteredIdentity]) -> None:
        ensure_dir(self.path.parent)
        rows: List[Dict] = [identity.to_record() for identity in identities]
        df = pd.DataFrame(rows, columns=COLUMNS)
        df["photo_path"] = df["photo_path"].astype("string")
        df["timestamp"] = df["timestamp"].astype("int64")
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            df.to_parquet(tmp_path, index=False)
            os.replace(tmp_path, self.path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()


def _row_to_identity(row: pd.Series) -> RegisteredIdentity:
    photo = row.get("photo_path")
    return RegisteredIdentity(
        id=str(row["id"]),
        name=str(row["name"]),
        signature=_normalize_embedding(row["embedding"]),
        created_at=int(row["timestamp"]),
        photo_ref=None if photo is None or pd.isna(photo) else str(photo),
    )


def _normalize_embedding(raw) -> np.ndarray:
    """Convert parquet-loaded embedding column into a 1D float32 vector."""
    if isinstance(raw, np.ndarray):
        if raw.dtype == object or raw.ndim > 1:
            parts = [np.asarray(part, dtype=np.float32).ravel() for part in raw]
            arr = np.concatenate(parts) if parts else np.empty((0,), dtype=np.float32)
        else:
            arr = raw.astype(np.float32)
    else:
        arr = np.asarray(raw, dtype=np.float32)
    return arr.reshape(-1).astype(np.float32)

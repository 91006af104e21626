"""Exception types raised across the faceprint package."""

from __future__ import annotations


class FaceprintError(Exception):
    """Base class for faceprint errors."""


class GeometryError(FaceprintError, ValueError):
    """Bounding box or frame dimensions are degenerate."""


class EngineUnavailable(FaceprintError, RuntimeError):
    """The inference engine failed to initialise or is not ready."""


class DimensionMismatch(FaceprintError, ValueError):
    """Two vectors (or a vector and a declared contract) disagree in length."""


class NoFaceDetected(FaceprintError, ValueError):
    """No detection cleared the confidence threshold."""


class IdentityNotFound(FaceprintError, KeyError):
    """Requested identity id is not present in the store."""


class DuplicateIdentity(FaceprintError, ValueError):
    """An identity with the same id already exists in the store."""

"""Typed errors raised by aumai-manifest."""

from __future__ import annotations

__all__ = [
    "BlobRetrievalError",
    "BlobUploadError",
    "DigestVerificationError",
    "InspectError",
    "LayerCompressionIncompatibilityError",
    "ManifestError",
    "ManifestParseError",
    "StructuralMismatchError",
    "UnsupportedConversionError",
    "UnsupportedMediaTypeError",
]


class ManifestError(Exception):
    """Base manifest error."""


class ManifestParseError(ManifestError, ValueError):
    """Malformed manifest JSON or a document of the wrong schema."""


class UnsupportedMediaTypeError(ManifestError, ValueError):
    """A media type outside the supported catalog."""


class UnsupportedConversionError(ManifestError):
    """The requested target schema cannot express this manifest."""


class LayerCompressionIncompatibilityError(UnsupportedConversionError):
    """A layer's compression variant does not exist in the target schema."""


class StructuralMismatchError(ManifestError):
    """Layer or history counts do not line up."""


class DigestVerificationError(ManifestError):
    """Fetched content does not match the digest it was requested by."""


class BlobRetrievalError(ManifestError):
    """The blob source failed to deliver a blob."""


class BlobUploadError(ManifestError):
    """The blob destination failed to accept a blob."""


class InspectError(ManifestError):
    """The image configuration could not be turned into inspection data."""

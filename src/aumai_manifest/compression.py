"""Compression algorithms and the layer media-type variants each schema allows."""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, ConfigDict

from . import media_types as mt
from .errors import (
    LayerCompressionIncompatibilityError,
    UnsupportedConversionError,
    UnsupportedMediaTypeError,
)

if TYPE_CHECKING:
    from .models import BlobDescriptor

__all__ = [
    "Algorithm",
    "BaseKind",
    "CompressionOperation",
    "GZIP",
    "KNOWN_ALGORITHMS",
    "OCI1_VARIANTS",
    "SCHEMA2_VARIANTS",
    "ZSTD",
    "layer_compression",
    "layer_media_type",
    "requested_compression",
    "updated_media_type",
]


class CompressionOperation(IntEnum):
    """What the copy pipeline did to a layer's compression."""

    PRESERVE_ORIGINAL = 0
    COMPRESS = 1
    DECOMPRESS = 2


class Algorithm(BaseModel):
    """A compression algorithm, identified by name."""

    model_config = ConfigDict(frozen=True)

    name: str


GZIP = Algorithm(name="gzip")
ZSTD = Algorithm(name="zstd")

KNOWN_ALGORITHMS: dict[str, Algorithm] = {GZIP.name: GZIP, ZSTD.name: ZSTD}


class BaseKind(str, Enum):
    """The content kind of a layer, independent of its compression."""

    LAYER = "layer"
    NONDISTRIBUTABLE = "nondistributable"


# Variant tables: base kind -> {algorithm name or "" for uncompressed: media type}.
# ``None`` marks a variant the schema cannot express.
_UNCOMPRESSED = ""
VariantTable = dict[BaseKind, dict[str, Optional[str]]]

OCI1_VARIANTS: VariantTable = {
    BaseKind.NONDISTRIBUTABLE: {
        _UNCOMPRESSED: mt.OCI_IMAGE_LAYER_NONDISTRIBUTABLE,
        GZIP.name: mt.OCI_IMAGE_LAYER_NONDISTRIBUTABLE_GZIP,
        ZSTD.name: mt.OCI_IMAGE_LAYER_NONDISTRIBUTABLE_ZSTD,
    },
    BaseKind.LAYER: {
        _UNCOMPRESSED: mt.OCI_IMAGE_LAYER,
        GZIP.name: mt.OCI_IMAGE_LAYER_GZIP,
        ZSTD.name: mt.OCI_IMAGE_LAYER_ZSTD,
    },
}

SCHEMA2_VARIANTS: VariantTable = {
    BaseKind.NONDISTRIBUTABLE: {
        _UNCOMPRESSED: mt.DOCKER_V2_SCHEMA2_FOREIGN_LAYER,
        GZIP.name: mt.DOCKER_V2_SCHEMA2_FOREIGN_LAYER_GZIP,
        ZSTD.name: None,
    },
    BaseKind.LAYER: {
        _UNCOMPRESSED: mt.DOCKER_V2_SCHEMA2_LAYER_UNCOMPRESSED,
        GZIP.name: mt.DOCKER_V2_SCHEMA2_LAYER,
        ZSTD.name: None,
    },
}


def layer_compression(
    table: VariantTable, media_type: str
) -> tuple[BaseKind, Optional[Algorithm]]:
    """
    Split a layer media type into its base kind and compression algorithm.

    Raises ``UnsupportedMediaTypeError`` for media types absent from *table*.
    """
    for kind, variants in table.items():
        for name, candidate in variants.items():
            if candidate is not None and candidate == media_type:
                return kind, (KNOWN_ALGORITHMS[name] if name else None)
    raise UnsupportedMediaTypeError(f"unsupported layer media type: {media_type!r}")


def layer_media_type(
    table: VariantTable, kind: BaseKind, algorithm: Optional[Algorithm]
) -> str:
    """
    Return the media type for *kind* compressed with *algorithm* (``None``: uncompressed).

    Raises ``LayerCompressionIncompatibilityError`` when the schema has no
    such variant.
    """
    variants = table[kind]
    name = algorithm.name if algorithm is not None else _UNCOMPRESSED
    if name not in variants:
        raise LayerCompressionIncompatibilityError(
            f"unknown compressed with algorithm {name} variant for {kind.value} layers"
        )
    resolved = variants[name]
    if resolved is None:
        if name:
            raise LayerCompressionIncompatibilityError(
                f"{name} compression is not supported for {kind.value} layers "
                "in this manifest schema"
            )
        raise LayerCompressionIncompatibilityError(
            f"uncompressed variant is not supported for {kind.value} layers"
        )
    return resolved


def requested_compression(
    info: BlobDescriptor,
) -> tuple[CompressionOperation, Optional[Algorithm]]:
    """
    Validate the compression change recorded in *info*.

    ``COMPRESS`` needs a known algorithm and ``DECOMPRESS`` must not name
    one. The algorithm is returned only for ``COMPRESS``.
    """
    try:
        operation = CompressionOperation(info.compression_operation)
    except ValueError:
        raise UnsupportedConversionError(
            f"unknown compression operation ({info.compression_operation!r})"
        ) from None

    algorithm = info.compression_algorithm
    if operation is CompressionOperation.PRESERVE_ORIGINAL:
        return operation, None
    if operation is CompressionOperation.DECOMPRESS:
        if algorithm is not None:
            raise UnsupportedConversionError(
                f"decompression of layer {info.digest} must not name an algorithm, "
                f"got {algorithm.name!r}"
            )
        return operation, None
    if algorithm is None:
        raise UnsupportedConversionError("cannot compress without an algorithm")
    if KNOWN_ALGORITHMS.get(algorithm.name) != algorithm:
        raise UnsupportedConversionError(
            f"unknown compression algorithm {algorithm.name!r}"
        )
    return operation, algorithm


def updated_media_type(
    table: VariantTable, media_type: str, info: BlobDescriptor
) -> str:
    """Compute the media type a layer gets after the compression change in *info*."""
    operation, algorithm = requested_compression(info)
    if operation is CompressionOperation.PRESERVE_ORIGINAL:
        return media_type
    kind, _ = layer_compression(table, media_type)
    return layer_media_type(table, kind, algorithm)

"""
Cross-schema manifest conversion.

Supported directions: OCI1 <-> schema 2, OCI1 -> schema 1 (by way of
schema 2) and schema 2 -> schema 1. Every function here takes documents
it may read but never modifies, and returns a new document.
"""

from __future__ import annotations

import hashlib
import logging
import re
from enum import Enum

from . import digest as digestlib
from . import media_types as mt
from .common import go_json_compact, go_json_dumps, raw_json_members
from .compression import (
    OCI1_VARIANTS,
    SCHEMA2_VARIANTS,
    VariantTable,
    layer_compression,
    layer_media_type,
)
from .errors import (
    BlobUploadError,
    InspectError,
    ManifestParseError,
    StructuralMismatchError,
    UnsupportedConversionError,
    UnsupportedMediaTypeError,
)
from .imageconfig import parse_image_config
from .models import BlobDescriptor, BlobDestination, History
from .oci1 import OCI1, OCI1Descriptor, oci1_from_components
from .reference import split_name_tag
from .schema1 import Schema1, Schema1FSLayer, Schema1History, schema1_from_components
from .schema2 import Schema2, Schema2Descriptor, schema2_from_components

__all__ = [
    "GZIPPED_EMPTY_LAYER",
    "GZIPPED_EMPTY_LAYER_DIGEST",
    "ManifestSchema",
    "SUPPORTED_CONVERSIONS",
    "conversion_target",
    "oci1_to_schema2",
    "schema2_to_oci1",
    "schema2_to_schema1",
]

logger = logging.getLogger(__name__)

# A gzip-compressed tar archive with no entries; schema 1 pairs it with
# every history entry that did not change the filesystem.
GZIPPED_EMPTY_LAYER = bytes([
    31, 139, 8, 0, 0, 9, 110, 136, 0, 255, 98, 24, 5, 163, 96, 20, 140, 88,
    0, 8, 0, 0, 255, 255, 46, 175, 181, 239, 0, 4, 0, 0,
])
GZIPPED_EMPTY_LAYER_DIGEST = (
    "sha256:a3ed95caeb02ffe68cdd9fd84406680ae93d633cb16422d00e8a7c22955b46d4"
)

_GO_ZERO_TIME = "0001-01-01T00:00:00Z"
_TIMESTAMP_RE = re.compile(r"^(.*T\d{2}:\d{2}:\d{2})(\.\d+)?(.*)$")


class ManifestSchema(str, Enum):
    OCI1 = "oci1"
    SCHEMA2 = "schema2"
    SCHEMA1 = "schema1"


_SCHEMA_BY_MEDIA_TYPE = {
    mt.OCI_IMAGE_MANIFEST: ManifestSchema.OCI1,
    mt.DOCKER_V2_SCHEMA2: ManifestSchema.SCHEMA2,
    mt.DOCKER_V2_SCHEMA1: ManifestSchema.SCHEMA1,
    mt.DOCKER_V2_SCHEMA1_SIGNED: ManifestSchema.SCHEMA1,
}

SUPPORTED_CONVERSIONS = frozenset({
    (ManifestSchema.OCI1, ManifestSchema.SCHEMA2),
    (ManifestSchema.SCHEMA2, ManifestSchema.OCI1),
    (ManifestSchema.OCI1, ManifestSchema.SCHEMA1),
    (ManifestSchema.SCHEMA2, ManifestSchema.SCHEMA1),
})


def conversion_target(
    source: ManifestSchema, current_media_type: str, target_media_type: str | None
) -> ManifestSchema | None:
    """
    Return the schema to convert to, or ``None`` when no schema change is asked for.

    Returning *source* itself means the schema stays but the media type
    changes (signed vs. unsigned schema 1).
    """
    if not target_media_type or target_media_type == current_media_type:
        return None
    target = _SCHEMA_BY_MEDIA_TYPE.get(target_media_type)
    if target is None:
        raise UnsupportedConversionError(
            f"unsupported conversion type: {target_media_type!r}"
        )
    if target is not source and (source, target) not in SUPPORTED_CONVERSIONS:
        raise UnsupportedConversionError(
            f"conversion from {current_media_type} to {target_media_type} is not supported"
        )
    return target


def _remap_layer_media_type(
    media_type: str, source: VariantTable, target: VariantTable
) -> str:
    try:
        kind, algorithm = layer_compression(source, media_type)
    except UnsupportedMediaTypeError as exc:
        raise UnsupportedConversionError(
            f"unknown media type during manifest conversion: {media_type!r}"
        ) from exc
    return layer_media_type(target, kind, algorithm)


def oci1_to_schema2(manifest: OCI1) -> Schema2:
    """
    Map an OCI image manifest onto schema 2.

    Annotations have no schema 2 counterpart and are dropped; zstd layers
    cannot be expressed and fail the conversion.
    """
    if manifest.config.media_type != mt.OCI_IMAGE_CONFIG:
        raise UnsupportedConversionError(
            f"cannot convert OCI artifact with config type "
            f"{manifest.config.media_type!r} to {mt.DOCKER_V2_SCHEMA2}"
        )
    config = Schema2Descriptor(
        media_type=mt.DOCKER_V2_SCHEMA2_CONFIG,
        size=manifest.config.size,
        digest=manifest.config.digest,
        urls=manifest.config.urls,
    )
    layers = [
        Schema2Descriptor(
            media_type=_remap_layer_media_type(
                layer.media_type, OCI1_VARIANTS, SCHEMA2_VARIANTS
            ),
            size=layer.size,
            digest=layer.digest,
            urls=layer.urls,
        )
        for layer in manifest.layers
    ]
    return schema2_from_components(config, layers)


def schema2_to_oci1(manifest: Schema2) -> OCI1:
    """Map a schema 2 manifest onto OCI; every schema 2 layer type has an OCI twin."""
    config = OCI1Descriptor(
        media_type=mt.OCI_IMAGE_CONFIG,
        size=manifest.config.size,
        digest=manifest.config.digest,
        urls=manifest.config.urls,
    )
    layers = [
        OCI1Descriptor(
            media_type=_remap_layer_media_type(
                layer.media_type, SCHEMA2_VARIANTS, OCI1_VARIANTS
            ),
            size=layer.size,
            digest=layer.digest,
            urls=layer.urls,
        )
        for layer in manifest.layers
    ]
    return oci1_from_components(config, layers)


def schema2_to_schema1(
    manifest: Schema2,
    config_blob: bytes,
    reference: str | None,
    destination: BlobDestination | None,
) -> Schema1:
    """
    Synthesize a schema 1 manifest from a schema 2 manifest and its config.

    Each config history entry becomes one schema 1 layer. Entries that add a
    layer consume the manifest's layers in order; the others point at
    ``GZIPPED_EMPTY_LAYER``, which is uploaded to *destination* first.
    """
    if not reference:
        raise UnsupportedConversionError(
            "converting to schema 1 needs an image reference to embed"
        )
    try:
        name, tag = split_name_tag(reference)
    except ValueError as exc:
        raise UnsupportedConversionError(str(exc)) from exc

    try:
        image_config = parse_image_config(config_blob)
    except InspectError as exc:
        raise ManifestParseError(str(exc)) from exc
    history = image_config.history or []
    if not history:
        raise StructuralMismatchError(
            f"cannot convert an image with 0 history entries to {mt.DOCKER_V2_SCHEMA1_SIGNED}"
        )
    layer_adding = sum(1 for entry in history if not entry.empty_layer)
    if layer_adding != len(manifest.layers):
        raise StructuralMismatchError(
            f"invalid image configuration: {layer_adding} history entries add layers, "
            f"but the manifest has {len(manifest.layers)} layers"
        )
    if layer_adding != len(history):
        _upload_empty_layer(destination)

    fs_layers: list[Schema1FSLayer] = []
    entries: list[Schema1History] = []
    layers = iter(manifest.layers)
    v1_id = ""
    parent_id = ""
    for entry in history:
        parent_id = v1_id
        if entry.empty_layer:
            blob_digest = GZIPPED_EMPTY_LAYER_DIGEST
        else:
            blob_digest = next(layers).digest
        # pull ignores these IDs beyond the parent links; derive them the way docker does
        v1_id = _v1_id(blob_digest, parent_id)
        fs_layers.append(Schema1FSLayer(blob_sum=blob_digest))
        entries.append(
            Schema1History(v1_compatibility=_v1_compatibility(entry, v1_id, parent_id))
        )

    # The top entry carries the whole image configuration.
    top_id = _v1_id(fs_layers[-1].blob_sum, parent_id, config_blob.decode("utf-8"))
    entries[-1] = Schema1History(
        v1_compatibility=_v1_config_from_config_json(
            config_blob, top_id, parent_id, history[-1].empty_layer
        )
    )

    fs_layers.reverse()
    entries.reverse()
    return schema1_from_components(
        name, tag, fs_layers, entries, image_config.architecture or ""
    )


def _upload_empty_layer(destination: BlobDestination | None) -> None:
    if destination is None:
        raise UnsupportedConversionError(
            "converting to schema 1 needs a destination for the empty layer blob"
        )
    info = BlobDescriptor(
        digest=GZIPPED_EMPTY_LAYER_DIGEST,
        size=len(GZIPPED_EMPTY_LAYER),
        media_type=mt.DOCKER_V2_SCHEMA2_LAYER,
    )
    logger.debug("Uploading empty layer during conversion to schema 1")
    try:
        stored = destination.put_blob(GZIPPED_EMPTY_LAYER, info)
    except Exception as exc:
        raise BlobUploadError(f"uploading empty layer: {exc}") from exc
    if stored.digest != GZIPPED_EMPTY_LAYER_DIGEST:
        raise BlobUploadError(
            f"uploaded empty layer has digest {stored.digest!r} "
            f"instead of {GZIPPED_EMPTY_LAYER_DIGEST}"
        )


def _v1_id(blob_digest: str, *others: str) -> str:
    parts = [digestlib.hex_part(blob_digest), *others]
    return hashlib.sha256(" ".join(parts).encode("utf-8")).hexdigest()


def _go_timestamp(value: str | None) -> str:
    """Re-render an RFC 3339 timestamp the way Go's time.Time marshals it."""
    if not value:
        return _GO_ZERO_TIME
    match = _TIMESTAMP_RE.match(value)
    if match is None:
        return value
    head, fraction, zone = match.groups()
    fraction = (fraction or "").rstrip("0")
    if fraction == ".":
        fraction = ""
    if zone in ("+00:00", "-00:00"):
        zone = "Z"
    return head + fraction + zone


def _v1_compatibility(entry: History, v1_id: str, parent_id: str) -> str:
    # Key order and omissions follow docker's v1 image JSON.
    fake_image: dict[str, object] = {"id": v1_id}
    if parent_id:
        fake_image["parent"] = parent_id
    if entry.comment:
        fake_image["comment"] = entry.comment
    fake_image["created"] = _go_timestamp(entry.created)
    fake_image["container_config"] = {"Cmd": [entry.created_by or ""]}
    if entry.author:
        fake_image["author"] = entry.author
    if entry.empty_layer:
        fake_image["throwaway"] = True
    return go_json_dumps(fake_image)


def _v1_config_from_config_json(
    config_blob: bytes, v1_id: str, parent_id: str, throwaway: bool
) -> str:
    # Config values are carried as raw JSON text; only whitespace changes.
    try:
        raw = raw_json_members(config_blob.decode("utf-8"))
    except ValueError as exc:
        raise ManifestParseError(f"invalid image configuration: {exc}") from exc
    raw.pop("rootfs", None)
    raw.pop("history", None)
    raw["id"] = go_json_dumps(v1_id)
    if parent_id:
        raw["parent"] = go_json_dumps(parent_id)
    if throwaway:
        raw["throwaway"] = "true"
    members = [f"{go_json_dumps(key)}:{go_json_compact(raw[key])}" for key in sorted(raw)]
    return "{" + ",".join(members) + "}"

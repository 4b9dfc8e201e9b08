"""Media type catalog for OCI and Docker Distribution manifests."""

from __future__ import annotations

import json
from typing import Any

from .errors import UnsupportedMediaTypeError

__all__ = [
    "DOCKER_V2_LIST",
    "DOCKER_V2_SCHEMA1",
    "DOCKER_V2_SCHEMA1_SIGNED",
    "DOCKER_V2_SCHEMA2",
    "DOCKER_V2_SCHEMA2_CONFIG",
    "DOCKER_V2_SCHEMA2_FOREIGN_LAYER",
    "DOCKER_V2_SCHEMA2_FOREIGN_LAYER_GZIP",
    "DOCKER_V2_SCHEMA2_LAYER",
    "DOCKER_V2_SCHEMA2_LAYER_UNCOMPRESSED",
    "OCI_DESCRIPTOR",
    "OCI_IMAGE_CONFIG",
    "OCI_IMAGE_INDEX",
    "OCI_IMAGE_LAYER",
    "OCI_IMAGE_LAYER_GZIP",
    "OCI_IMAGE_LAYER_NONDISTRIBUTABLE",
    "OCI_IMAGE_LAYER_NONDISTRIBUTABLE_GZIP",
    "OCI_IMAGE_LAYER_NONDISTRIBUTABLE_ZSTD",
    "OCI_IMAGE_LAYER_ZSTD",
    "OCI_IMAGE_MANIFEST",
    "OCI_LAYOUT_HEADER",
    "SCHEMA1_MEDIA_TYPES",
    "guess_media_type",
    "normalized_media_type",
    "supported_oci1_media_type",
    "supported_schema2_media_type",
]

# OCI image-spec v1
OCI_DESCRIPTOR = "application/vnd.oci.descriptor.v1+json"
OCI_LAYOUT_HEADER = "application/vnd.oci.layout.header.v1+json"
OCI_IMAGE_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
OCI_IMAGE_INDEX = "application/vnd.oci.image.index.v1+json"
OCI_IMAGE_CONFIG = "application/vnd.oci.image.config.v1+json"
OCI_IMAGE_LAYER = "application/vnd.oci.image.layer.v1.tar"
OCI_IMAGE_LAYER_GZIP = "application/vnd.oci.image.layer.v1.tar+gzip"
OCI_IMAGE_LAYER_ZSTD = "application/vnd.oci.image.layer.v1.tar+zstd"
OCI_IMAGE_LAYER_NONDISTRIBUTABLE = "application/vnd.oci.image.layer.nondistributable.v1.tar"
OCI_IMAGE_LAYER_NONDISTRIBUTABLE_GZIP = (
    "application/vnd.oci.image.layer.nondistributable.v1.tar+gzip"
)
OCI_IMAGE_LAYER_NONDISTRIBUTABLE_ZSTD = (
    "application/vnd.oci.image.layer.nondistributable.v1.tar+zstd"
)

# Docker Distribution
DOCKER_V2_SCHEMA1 = "application/vnd.docker.distribution.manifest.v1+json"
DOCKER_V2_SCHEMA1_SIGNED = "application/vnd.docker.distribution.manifest.v1+prettyjws"
DOCKER_V2_SCHEMA2 = "application/vnd.docker.distribution.manifest.v2+json"
DOCKER_V2_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"
DOCKER_V2_SCHEMA2_CONFIG = "application/vnd.docker.container.image.v1+json"
DOCKER_V2_SCHEMA2_LAYER = "application/vnd.docker.image.rootfs.diff.tar.gzip"
DOCKER_V2_SCHEMA2_LAYER_UNCOMPRESSED = "application/vnd.docker.image.rootfs.diff.tar"
DOCKER_V2_SCHEMA2_FOREIGN_LAYER = "application/vnd.docker.image.rootfs.foreign.diff.tar"
DOCKER_V2_SCHEMA2_FOREIGN_LAYER_GZIP = (
    "application/vnd.docker.image.rootfs.foreign.diff.tar.gzip"
)

SCHEMA1_MEDIA_TYPES = frozenset({DOCKER_V2_SCHEMA1, DOCKER_V2_SCHEMA1_SIGNED})

_OCI1_SUPPORTED = frozenset({
    OCI_DESCRIPTOR,
    OCI_IMAGE_CONFIG,
    OCI_IMAGE_LAYER,
    OCI_IMAGE_LAYER_GZIP,
    OCI_IMAGE_LAYER_ZSTD,
    OCI_IMAGE_LAYER_NONDISTRIBUTABLE,
    OCI_IMAGE_LAYER_NONDISTRIBUTABLE_GZIP,
    OCI_IMAGE_LAYER_NONDISTRIBUTABLE_ZSTD,
    OCI_IMAGE_MANIFEST,
    OCI_LAYOUT_HEADER,
})

_SCHEMA2_SUPPORTED = frozenset({
    DOCKER_V2_SCHEMA2_CONFIG,
    DOCKER_V2_SCHEMA2_LAYER,
    DOCKER_V2_SCHEMA2_LAYER_UNCOMPRESSED,
    DOCKER_V2_SCHEMA2_FOREIGN_LAYER,
    DOCKER_V2_SCHEMA2_FOREIGN_LAYER_GZIP,
    DOCKER_V2_SCHEMA2,
})


def supported_oci1_media_type(media_type: str) -> None:
    """Raise ``UnsupportedMediaTypeError`` unless *media_type* is an OCI v1 type we handle."""
    if media_type not in _OCI1_SUPPORTED:
        raise UnsupportedMediaTypeError(f"unsupported OCI v1 media type: {media_type!r}")


def supported_schema2_media_type(media_type: str) -> None:
    """Raise ``UnsupportedMediaTypeError`` unless *media_type* is a Docker schema 2 type we handle."""
    if media_type not in _SCHEMA2_SUPPORTED:
        raise UnsupportedMediaTypeError(
            f"unsupported docker v2s2 media type: {media_type!r}"
        )


def normalized_media_type(media_type: str) -> str:
    """Collapse the historical aliases of the manifest types to the canonical ones."""
    if media_type in (
        OCI_IMAGE_MANIFEST,
        OCI_IMAGE_INDEX,
        DOCKER_V2_SCHEMA1,
        DOCKER_V2_SCHEMA1_SIGNED,
        DOCKER_V2_SCHEMA2,
        DOCKER_V2_LIST,
    ):
        return media_type
    # Registries behind CDNs answer with "application/json", "text/plain" or
    # worse; docker/distribution falls back to signed schema 1 for those.
    return DOCKER_V2_SCHEMA1_SIGNED


def guess_media_type(manifest: bytes) -> str:
    """
    Return the manifest media type *manifest* most likely is, or ``""``.

    The explicit ``mediaType`` field wins; otherwise ``schemaVersion`` and
    the shape of the document decide.
    """
    try:
        meta: Any = json.loads(manifest)
    except ValueError:
        return ""
    if not isinstance(meta, dict):
        return ""

    media_type = meta.get("mediaType")
    if media_type in (DOCKER_V2_SCHEMA2, DOCKER_V2_LIST, OCI_IMAGE_MANIFEST, OCI_IMAGE_INDEX):
        return media_type

    schema_version = meta.get("schemaVersion")
    if schema_version == 1:
        if meta.get("signatures") is not None:
            return DOCKER_V2_SCHEMA1_SIGNED
        return DOCKER_V2_SCHEMA1
    if schema_version == 2:
        # OCI image-spec < 1.0.2 did not require mediaType in the manifest.
        config = meta.get("config")
        config_type = config.get("mediaType") if isinstance(config, dict) else None
        if config_type == OCI_IMAGE_CONFIG:
            return OCI_IMAGE_MANIFEST
        if config_type == DOCKER_V2_SCHEMA2_CONFIG:
            return DOCKER_V2_SCHEMA2
        manifests = meta.get("manifests")
        if isinstance(manifests, list) and manifests:
            first = manifests[0] if isinstance(manifests[0], dict) else {}
            if first.get("mediaType") == OCI_IMAGE_MANIFEST:
                return OCI_IMAGE_INDEX
            return DOCKER_V2_LIST
        return DOCKER_V2_SCHEMA2
    return ""

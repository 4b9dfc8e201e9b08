"""
Docker Distribution manifest schema 1.

Layers (``fsLayers``) and their ``history`` are listed most-recent first;
every history entry carries a legacy v1 image JSON document as a string.
A JWS signature block, when present, is kept verbatim but never produced.
"""

from __future__ import annotations

import json
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from . import digest as digestlib
from . import media_types as mt
from .common import load_json_object, reject_ambiguous_fields, validate_document
from .compression import GZIP, CompressionOperation, requested_compression
from .errors import (
    InspectError,
    LayerCompressionIncompatibilityError,
    ManifestParseError,
    StructuralMismatchError,
)
from .models import BlobDescriptor, ContainerConfig, ImageConfig, ImageInspectInfo

__all__ = [
    "Schema1",
    "Schema1FSLayer",
    "Schema1History",
    "V1Compatibility",
    "schema1_from_components",
    "schema1_from_manifest",
]

_V1_ID_RE = re.compile(r"^[a-f0-9]{64}$")


class Schema1FSLayer(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    blob_sum: str = Field(alias="blobSum")

    @field_validator("blob_sum")
    @classmethod
    def _check_digest(cls, value: str) -> str:
        digestlib.validate(value)
        return value


class Schema1History(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    v1_compatibility: str = Field(alias="v1Compatibility")


class V1Compatibility(BaseModel):
    """The parts of a ``v1Compatibility`` document that tie the history together."""

    model_config = ConfigDict(extra="allow")

    id: str
    parent: str = ""
    comment: str = ""
    created: str | None = None
    container_config: ContainerConfig | None = None
    author: str = ""
    throwaway: bool = False


class Schema1(BaseModel):
    """A Docker schema 1 manifest document."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = ""
    tag: str = ""
    architecture: str = ""
    fs_layers: list[Schema1FSLayer] = Field(alias="fsLayers")
    history: list[Schema1History]
    schema_version: int = Field(default=1, alias="schemaVersion")
    signatures: list[dict[str, Any]] | None = None

    def serialize(self) -> bytes:
        return json.dumps(
            self.model_dump(by_alias=True, exclude_none=True), indent=3
        ).encode("utf-8")

    def extracted_v1_compatibility(self) -> list[V1Compatibility]:
        """Decode every history entry; raises ``ManifestParseError`` on bad JSON."""
        extracted: list[V1Compatibility] = []
        for entry in self.history:
            try:
                extracted.append(
                    V1Compatibility.model_validate_json(entry.v1_compatibility)
                )
            except ValidationError as exc:
                raise ManifestParseError(
                    f"invalid v1Compatibility history entry: {exc}"
                ) from exc
        return extracted

    def config_info(self) -> BlobDescriptor:
        # Schema 1 has no separate config blob.
        return BlobDescriptor()

    def layer_infos(self) -> list[BlobDescriptor]:
        """Layers base-first, like the other schemas; sizes are not recorded."""
        return [
            BlobDescriptor(digest=layer.blob_sum, size=-1)
            for layer in reversed(self.fs_layers)
        ]

    def update_layer_infos(self, layer_infos: list[BlobDescriptor]) -> None:
        """
        Replace the layer digests, in place. *layer_infos* is base-first.

        The v1 IDs in the history are not recomputed; docker pull only checks
        their parent links.
        """
        if len(self.fs_layers) != len(layer_infos):
            raise StructuralMismatchError(
                f"preparing updated manifest: layer count changed from "
                f"{len(self.fs_layers)} to {len(layer_infos)}"
            )
        for info in layer_infos:
            operation, algorithm = requested_compression(info)
            if operation is CompressionOperation.DECOMPRESS:
                raise LayerCompressionIncompatibilityError(
                    "uncompressed layers are not supported in schema 1 manifests"
                )
            if algorithm is not None and algorithm != GZIP:
                raise LayerCompressionIncompatibilityError(
                    f"{algorithm.name} compression is not supported in schema 1 manifests"
                )
        count = len(layer_infos)
        self.fs_layers = [
            Schema1FSLayer(blob_sum=layer_infos[count - 1 - i].digest)
            for i in range(count)
        ]

    def inspect(self) -> ImageInspectInfo:
        """Summarize the image from the top history entry."""
        try:
            v1 = ImageConfig.model_validate_json(self.history[0].v1_compatibility)
        except ValidationError as exc:
            raise InspectError(f"invalid top-level v1Compatibility: {exc}") from exc
        container = v1.config or ContainerConfig()
        return ImageInspectInfo(
            tag=self.tag,
            created=v1.created,
            docker_version=v1.docker_version or "",
            labels=container.labels or {},
            architecture=v1.architecture or "",
            variant=v1.variant or "",
            os=v1.os or "",
            author=v1.author or "",
            layers=[info.digest for info in self.layer_infos()],
            env=container.env or [],
        )


def _fix_manifest_layers(manifest: Schema1) -> None:
    """
    Validate the v1 ID chain and collapse adjacent duplicate entries.

    Old docker versions pushed the same layer twice in a row; such entries
    share an ID and are dropped. Any other repeated ID is an error.
    """
    if len(manifest.fs_layers) != len(manifest.history):
        raise ManifestParseError(
            f"length of history ({len(manifest.history)}) not equal to "
            f"number of layers ({len(manifest.fs_layers)})"
        )
    if not manifest.fs_layers:
        raise ManifestParseError("no fsLayers in manifest")

    extracted = manifest.extracted_v1_compatibility()
    for compat in extracted:
        if not _V1_ID_RE.match(compat.id):
            raise ManifestParseError(f"invalid v1 image ID {compat.id!r}")
    if extracted[-1].parent:
        raise ManifestParseError("invalid parent ID in the base layer of the image")

    seen: set[str] = set()
    last_id = ""
    for compat in extracted:
        if compat.id != last_id and compat.id in seen:
            raise ManifestParseError(f"ID {compat.id} appears multiple times in manifest")
        last_id = compat.id
        seen.add(compat.id)

    fs_layers = list(manifest.fs_layers)
    history = list(manifest.history)
    # Walk backwards so indexes below i stay valid while removing.
    for i in range(len(extracted) - 2, -1, -1):
        if extracted[i].id == extracted[i + 1].id:
            del fs_layers[i]
            del history[i]
            del extracted[i]
        elif extracted[i].parent != extracted[i + 1].id:
            raise ManifestParseError(
                f"invalid parent ID: expected {extracted[i + 1].id}, "
                f"got {extracted[i].parent}"
            )
    manifest.fs_layers = fs_layers
    manifest.history = history


def schema1_from_manifest(manifest: bytes) -> Schema1:
    """Parse *manifest* (signed or unsigned) as a Docker schema 1 manifest."""
    raw = load_json_object(manifest)
    reject_ambiguous_fields(
        raw,
        expected_media_types=mt.SCHEMA1_MEDIA_TYPES,
        allowed_fields=["fsLayers", "history"],
    )
    if raw.get("schemaVersion") != 1:
        raise ManifestParseError(
            f"unsupported schema 1 manifest schemaVersion {raw.get('schemaVersion')!r}"
        )
    parsed = validate_document(Schema1, raw)
    _fix_manifest_layers(parsed)
    return parsed


def schema1_from_components(
    name: str,
    tag: str,
    fs_layers: list[Schema1FSLayer],
    history: list[Schema1History],
    architecture: str,
) -> Schema1:
    """Build an unsigned schema 1 manifest; layers and history are most-recent first."""
    built = Schema1(
        name=name,
        tag=tag,
        architecture=architecture,
        fs_layers=[layer.model_copy() for layer in fs_layers],
        history=[entry.model_copy() for entry in history],
        schema_version=1,
    )
    _fix_manifest_layers(built)
    return built

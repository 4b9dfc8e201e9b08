"""
OCI image manifest (``application/vnd.oci.image.manifest.v1+json``).

Follows the OCI Image Manifest Specification
https://github.com/opencontainers/image-spec/blob/main/manifest.md
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from . import digest as digestlib
from . import media_types as mt
from .common import load_json_object, reject_ambiguous_fields, validate_document
from .compression import OCI1_VARIANTS, updated_media_type
from .errors import StructuralMismatchError
from .models import BlobDescriptor

__all__ = [
    "OCI1",
    "OCI1Descriptor",
    "oci1_from_components",
    "oci1_from_manifest",
]


class OCI1Descriptor(BaseModel):
    """A content descriptor as written in an OCI manifest."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    media_type: str = Field(alias="mediaType")
    digest: str
    size: int
    urls: list[str] | None = None
    annotations: dict[str, str] | None = None
    artifact_type: str | None = Field(default=None, alias="artifactType")
    platform: dict[str, Any] | None = None

    @field_validator("digest")
    @classmethod
    def _check_digest(cls, value: str) -> str:
        digestlib.validate(value)
        return value


class OCI1(BaseModel):
    """
    An OCI image manifest document.

    Methods named ``update_*`` change the document in place; callers that
    share the instance must copy it first.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    schema_version: int = Field(default=2, alias="schemaVersion")
    media_type: str | None = Field(default=None, alias="mediaType")
    artifact_type: str | None = Field(default=None, alias="artifactType")
    config: OCI1Descriptor
    layers: list[OCI1Descriptor] = Field(default_factory=list)
    subject: OCI1Descriptor | None = None
    annotations: dict[str, str] | None = None

    def serialize(self) -> bytes:
        return json.dumps(
            self.model_dump(by_alias=True, exclude_none=True)
        ).encode("utf-8")

    def config_info(self) -> BlobDescriptor:
        return BlobDescriptor(
            digest=self.config.digest,
            size=self.config.size,
            annotations=self.config.annotations,
            media_type=self.config.media_type,
        )

    def layer_infos(self) -> list[BlobDescriptor]:
        return [
            BlobDescriptor(
                digest=layer.digest,
                size=layer.size,
                media_type=layer.media_type,
                urls=layer.urls,
                annotations=layer.annotations,
            )
            for layer in self.layers
        ]

    def update_layer_infos(self, layer_infos: list[BlobDescriptor]) -> None:
        """
        Replace the layer descriptors with *layer_infos*, in place.

        Each layer keeps its base kind (regular or non-distributable); its
        compression suffix follows the operation recorded in the new info.
        """
        if len(self.layers) != len(layer_infos):
            raise StructuralMismatchError(
                f"preparing updated manifest: layer count changed from "
                f"{len(self.layers)} to {len(layer_infos)}"
            )
        updated: list[OCI1Descriptor] = []
        for original, info in zip(self.layers, layer_infos):
            media_type = updated_media_type(OCI1_VARIANTS, original.media_type, info)
            updated.append(
                OCI1Descriptor(
                    media_type=media_type,
                    digest=info.digest,
                    size=info.size,
                    urls=info.urls,
                    annotations=info.annotations,
                )
            )
        self.layers = updated


def oci1_from_manifest(manifest: bytes) -> OCI1:
    """Parse *manifest* as an OCI image manifest."""
    raw = load_json_object(manifest)
    reject_ambiguous_fields(
        raw,
        expected_media_types=[mt.OCI_IMAGE_MANIFEST],
        allowed_fields=["config", "layers"],
    )
    return validate_document(OCI1, raw)


def oci1_from_components(
    config: OCI1Descriptor,
    layers: list[OCI1Descriptor],
    annotations: dict[str, str] | None = None,
) -> OCI1:
    """Build an OCI manifest; descriptors are copied, not shared."""
    return OCI1(
        schema_version=2,
        media_type=mt.OCI_IMAGE_MANIFEST,
        config=config.model_copy(deep=True),
        layers=[layer.model_copy(deep=True) for layer in layers],
        annotations=dict(annotations) if annotations is not None else None,
    )

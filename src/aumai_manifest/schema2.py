"""Docker Distribution manifest schema 2 (``application/vnd.docker.distribution.manifest.v2+json``)."""

from __future__ import annotations

import json

from pydantic import BaseModel, ConfigDict, Field, field_validator

from . import digest as digestlib
from . import media_types as mt
from .common import load_json_object, reject_ambiguous_fields, validate_document
from .compression import SCHEMA2_VARIANTS, updated_media_type
from .errors import StructuralMismatchError
from .models import BlobDescriptor

__all__ = [
    "Schema2",
    "Schema2Descriptor",
    "schema2_from_components",
    "schema2_from_manifest",
]


class Schema2Descriptor(BaseModel):
    """A blob reference in a schema 2 manifest; no annotations, optional URLs."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    media_type: str = Field(alias="mediaType")
    size: int
    digest: str
    urls: list[str] | None = None

    @field_validator("digest")
    @classmethod
    def _check_digest(cls, value: str) -> str:
        digestlib.validate(value)
        return value


class Schema2(BaseModel):
    """A Docker schema 2 image manifest document."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    schema_version: int = Field(default=2, alias="schemaVersion")
    media_type: str | None = Field(default=None, alias="mediaType")
    config: Schema2Descriptor
    layers: list[Schema2Descriptor] = Field(default_factory=list)

    def serialize(self) -> bytes:
        return json.dumps(
            self.model_dump(by_alias=True, exclude_none=True)
        ).encode("utf-8")

    def config_info(self) -> BlobDescriptor:
        return BlobDescriptor(
            digest=self.config.digest,
            size=self.config.size,
            media_type=self.config.media_type,
        )

    def layer_infos(self) -> list[BlobDescriptor]:
        return [
            BlobDescriptor(
                digest=layer.digest,
                size=layer.size,
                media_type=layer.media_type,
                urls=layer.urls,
            )
            for layer in self.layers
        ]

    def update_layer_infos(self, layer_infos: list[BlobDescriptor]) -> None:
        """Replace the layer descriptors with *layer_infos*, in place."""
        if len(self.layers) != len(layer_infos):
            raise StructuralMismatchError(
                f"preparing updated manifest: layer count changed from "
                f"{len(self.layers)} to {len(layer_infos)}"
            )
        updated: list[Schema2Descriptor] = []
        for original, info in zip(self.layers, layer_infos):
            mt.supported_schema2_media_type(original.media_type)
            media_type = updated_media_type(SCHEMA2_VARIANTS, original.media_type, info)
            updated.append(
                Schema2Descriptor(
                    media_type=media_type,
                    size=info.size,
                    digest=info.digest,
                    urls=info.urls,
                )
            )
        self.layers = updated


def schema2_from_manifest(manifest: bytes) -> Schema2:
    """Parse *manifest* as a Docker schema 2 image manifest."""
    raw = load_json_object(manifest)
    reject_ambiguous_fields(
        raw,
        expected_media_types=[mt.DOCKER_V2_SCHEMA2],
        allowed_fields=["config", "layers"],
    )
    return validate_document(Schema2, raw)


def schema2_from_components(
    config: Schema2Descriptor, layers: list[Schema2Descriptor]
) -> Schema2:
    return Schema2(
        schema_version=2,
        media_type=mt.DOCKER_V2_SCHEMA2,
        config=config.model_copy(deep=True),
        layers=[layer.model_copy(deep=True) for layer in layers],
    )

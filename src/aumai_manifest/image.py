"""
The schema-independent manifest interface.

``GenericManifest`` is implemented by exactly three classes, one per
supported wire schema: ``OCI1Image``, ``Schema2Image`` and ``Schema1Image``.
Instances never change after construction; ``updated_image`` returns a new
instance and leaves the receiver untouched.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from . import media_types as mt
from .convert import (
    ManifestSchema,
    conversion_target,
    oci1_to_schema2,
    schema2_to_oci1,
    schema2_to_schema1,
)
from .errors import (
    BlobRetrievalError,
    DigestVerificationError,
    InspectError,
    UnsupportedConversionError,
    UnsupportedMediaTypeError,
)
from .imageconfig import fetch_config_blob, inspect_config
from .models import BlobDescriptor, BlobSource, ImageInspectInfo, ManifestUpdateOptions
from .oci1 import OCI1, OCI1Descriptor, oci1_from_components, oci1_from_manifest
from .reference import split_name_tag
from .schema1 import (
    Schema1,
    Schema1FSLayer,
    Schema1History,
    schema1_from_components,
    schema1_from_manifest,
)
from .schema2 import Schema2, Schema2Descriptor, schema2_from_components, schema2_from_manifest

__all__ = [
    "GenericManifest",
    "OCI1Image",
    "Schema1Image",
    "Schema2Image",
    "manifest_from_blob",
]

logger = logging.getLogger(__name__)


class GenericManifest(ABC):
    """Read access and conversion for a parsed manifest, whatever its schema."""

    @abstractmethod
    def serialize(self) -> bytes:
        """Encode the manifest as JSON."""

    @abstractmethod
    def manifest_media_type(self) -> str:
        ...

    @abstractmethod
    def config_info(self) -> BlobDescriptor:
        """The config descriptor; a zero-value descriptor when the schema has none."""

    @abstractmethod
    def layer_infos(self) -> list[BlobDescriptor]:
        """Layer descriptors, base layer first."""

    def embedded_reference_conflicts(self, reference: str) -> bool:
        """True if the manifest embeds an image reference other than *reference*."""
        return False

    @abstractmethod
    def config_blob(self, source: BlobSource | None = None) -> bytes:
        """
        Return the raw image configuration.

        *source* overrides the blob source the manifest was created with.
        """

    @abstractmethod
    def inspect(self, source: BlobSource | None = None) -> ImageInspectInfo:
        ...

    @abstractmethod
    def updated_image(self, options: ManifestUpdateOptions) -> GenericManifest:
        """
        Return a copy of this manifest with *options* applied.

        Layer replacement happens first, then the optional schema conversion.
        """

    def updated_image_needs_layer_diff_ids(self, options: ManifestUpdateOptions) -> bool:
        """Whether ``updated_image(options)`` needs the uncompressed layer digests."""
        return False


class _ConfigCarryingImage(GenericManifest):
    """Shared behaviour of the schemas that reference a separate config blob."""

    _schema: ManifestSchema

    def __init__(
        self,
        document: OCI1 | Schema2,
        config_blob: bytes | None = None,
        source: BlobSource | None = None,
    ) -> None:
        self._document = document
        self._config_blob = config_blob
        self._source = source

    def serialize(self) -> bytes:
        return self._document.serialize()

    def config_info(self) -> BlobDescriptor:
        return self._document.config_info()

    def layer_infos(self) -> list[BlobDescriptor]:
        return self._document.layer_infos()

    def config_blob(self, source: BlobSource | None = None) -> bytes:
        if self._config_blob is not None:
            return self._config_blob
        if source is None:
            source = self._source
        return fetch_config_blob(source, self.config_info())

    def inspect(self, source: BlobSource | None = None) -> ImageInspectInfo:
        try:
            blob = self.config_blob(source)
        except (BlobRetrievalError, DigestVerificationError) as exc:
            raise InspectError(f"reading image configuration: {exc}") from exc
        return inspect_config(blob, self.layer_infos())

    def _updated_document(self, options: ManifestUpdateOptions) -> OCI1 | Schema2:
        document = self._document.model_copy(deep=True)
        if options.layer_infos is not None:
            document.update_layer_infos(options.layer_infos)
        return document

    def _target(self, options: ManifestUpdateOptions) -> ManifestSchema | None:
        target = conversion_target(
            self._schema, self.manifest_media_type(), options.manifest_media_type
        )
        if target is not None:
            logger.debug(
                "Converting %s manifest to %s",
                self.manifest_media_type(),
                options.manifest_media_type,
            )
        return target


class OCI1Image(_ConfigCarryingImage):
    """An OCI image manifest."""

    _schema = ManifestSchema.OCI1
    _document: OCI1

    @classmethod
    def from_manifest(cls, manifest: bytes, source: BlobSource | None = None) -> OCI1Image:
        return cls(oci1_from_manifest(manifest), source=source)

    @classmethod
    def from_components(
        cls,
        config: OCI1Descriptor,
        layers: list[OCI1Descriptor],
        config_blob: bytes | None = None,
        annotations: dict[str, str] | None = None,
        source: BlobSource | None = None,
    ) -> OCI1Image:
        return cls(
            oci1_from_components(config, layers, annotations),
            config_blob=config_blob,
            source=source,
        )

    @property
    def document(self) -> OCI1:
        """A private copy of the wire document."""
        return self._document.model_copy(deep=True)

    def manifest_media_type(self) -> str:
        return mt.OCI_IMAGE_MANIFEST

    def inspect(self, source: BlobSource | None = None) -> ImageInspectInfo:
        config_type = self._document.config.media_type
        if config_type != mt.OCI_IMAGE_CONFIG:
            raise InspectError(
                f"cannot inspect OCI artifact with config type {config_type!r}"
            )
        return super().inspect(source)

    def updated_image(self, options: ManifestUpdateOptions) -> GenericManifest:
        document = self._updated_document(options)
        target = self._target(options)
        if target is None:
            return OCI1Image(document, self._config_blob, self._source)
        schema2 = Schema2Image(oci1_to_schema2(document), self._config_blob, self._source)
        if target is ManifestSchema.SCHEMA2:
            return schema2
        # Schema 1 is reached by way of schema 2; layers are already updated.
        return schema2.updated_image(
            ManifestUpdateOptions(
                embedded_reference=options.embedded_reference,
                manifest_media_type=options.manifest_media_type,
                destination=options.destination,
            )
        )


class Schema2Image(_ConfigCarryingImage):
    """A Docker schema 2 image manifest."""

    _schema = ManifestSchema.SCHEMA2
    _document: Schema2

    @classmethod
    def from_manifest(cls, manifest: bytes, source: BlobSource | None = None) -> Schema2Image:
        return cls(schema2_from_manifest(manifest), source=source)

    @classmethod
    def from_components(
        cls,
        config: Schema2Descriptor,
        layers: list[Schema2Descriptor],
        config_blob: bytes | None = None,
        source: BlobSource | None = None,
    ) -> Schema2Image:
        return cls(schema2_from_components(config, layers), config_blob, source)

    @property
    def document(self) -> Schema2:
        return self._document.model_copy(deep=True)

    def manifest_media_type(self) -> str:
        return mt.DOCKER_V2_SCHEMA2

    def updated_image(self, options: ManifestUpdateOptions) -> GenericManifest:
        document = self._updated_document(options)
        target = self._target(options)
        if target is None:
            return Schema2Image(document, self._config_blob, self._source)
        if target is ManifestSchema.OCI1:
            return OCI1Image(schema2_to_oci1(document), self._config_blob, self._source)
        schema1 = schema2_to_schema1(
            document,
            self.config_blob(),
            options.embedded_reference,
            options.destination,
        )
        return Schema1Image(schema1, options.manifest_media_type)


class Schema1Image(GenericManifest):
    """A Docker schema 1 manifest, signed or not. It has no config blob."""

    def __init__(self, document: Schema1, media_type: str | None = None) -> None:
        self._document = document
        if not media_type:
            media_type = (
                mt.DOCKER_V2_SCHEMA1_SIGNED if document.signatures else mt.DOCKER_V2_SCHEMA1
            )
        self._media_type = media_type

    @classmethod
    def from_manifest(cls, manifest: bytes) -> Schema1Image:
        return cls(schema1_from_manifest(manifest))

    @classmethod
    def from_components(
        cls,
        name: str,
        tag: str,
        fs_layers: list[Schema1FSLayer],
        history: list[Schema1History],
        architecture: str,
    ) -> Schema1Image:
        return cls(schema1_from_components(name, tag, fs_layers, history, architecture))

    @property
    def document(self) -> Schema1:
        return self._document.model_copy(deep=True)

    def serialize(self) -> bytes:
        return self._document.serialize()

    def manifest_media_type(self) -> str:
        return self._media_type

    def config_info(self) -> BlobDescriptor:
        return self._document.config_info()

    def layer_infos(self) -> list[BlobDescriptor]:
        return self._document.layer_infos()

    def embedded_reference_conflicts(self, reference: str) -> bool:
        # An untagged reference matches only an empty embedded tag.
        try:
            name, tag = split_name_tag(reference.partition("@")[0], default_tag="")
        except ValueError:
            return True
        return name != self._document.name or tag != self._document.tag

    def config_blob(self, source: BlobSource | None = None) -> bytes:
        return b""

    def inspect(self, source: BlobSource | None = None) -> ImageInspectInfo:
        return self._document.inspect()

    def updated_image_needs_layer_diff_ids(self, options: ManifestUpdateOptions) -> bool:
        return options.manifest_media_type in (mt.DOCKER_V2_SCHEMA2, mt.OCI_IMAGE_MANIFEST)

    def updated_image(self, options: ManifestUpdateOptions) -> GenericManifest:
        target = conversion_target(
            ManifestSchema.SCHEMA1, self._media_type, options.manifest_media_type
        )
        document = self._document.model_copy(deep=True)
        # Any signature covers the old payload.
        document.signatures = None
        if options.layer_infos is not None:
            document.update_layer_infos(options.layer_infos)
        if options.embedded_reference:
            try:
                name, tag = split_name_tag(options.embedded_reference)
            except ValueError as exc:
                raise UnsupportedConversionError(str(exc)) from exc
            document.name, document.tag = name, tag
        media_type = self._media_type if target is None else options.manifest_media_type
        return Schema1Image(document, media_type)


def manifest_from_blob(
    manifest: bytes,
    media_type: str | None = None,
    source: BlobSource | None = None,
) -> GenericManifest:
    """
    Parse *manifest* into the matching ``GenericManifest`` implementation.

    Without *media_type* the schema is guessed from the document itself.
    Manifest lists and image indexes are rejected; pick an instance first.
    """
    media_type = mt.normalized_media_type(media_type or mt.guess_media_type(manifest))
    if media_type in mt.SCHEMA1_MEDIA_TYPES:
        return Schema1Image.from_manifest(manifest)
    if media_type == mt.DOCKER_V2_SCHEMA2:
        return Schema2Image.from_manifest(manifest, source)
    if media_type == mt.OCI_IMAGE_MANIFEST:
        return OCI1Image.from_manifest(manifest, source)
    raise UnsupportedMediaTypeError(
        f"{media_type} is a manifest list, not a single image manifest"
    )

"""Pydantic models for aumai-manifest."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, BinaryIO, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .compression import Algorithm, CompressionOperation

__all__ = [
    "BlobDescriptor",
    "BlobDestination",
    "BlobSource",
    "ContainerConfig",
    "History",
    "ImageConfig",
    "ImageInspectInfo",
    "ManifestUpdateOptions",
    "RootFS",
]

_SUBMICROSECOND_RE = re.compile(r"(\.\d{6})\d+")


def _truncate_to_microseconds(value: Any) -> Any:
    # Go timestamps carry nanoseconds; datetime stops at microseconds.
    if isinstance(value, str):
        return _SUBMICROSECOND_RE.sub(r"\1", value, count=1)
    return value


class BlobDescriptor(BaseModel):
    """
    A reference to a content-addressed blob, plus the compression change
    the copy pipeline applied to it.

    ``size`` is -1 when unknown.
    """

    digest: str = ""               # <algorithm>:<hex>
    size: int = -1
    media_type: str = ""
    urls: list[str] | None = None
    annotations: dict[str, str] | None = None
    compression_operation: CompressionOperation = CompressionOperation.PRESERVE_ORIGINAL
    compression_algorithm: Algorithm | None = None


@runtime_checkable
class BlobSource(Protocol):
    """Where config blobs are fetched from."""

    def get_blob(self, digest: str) -> tuple[BinaryIO, int]:
        """Return an open stream over the blob and its size (-1 if unknown)."""
        ...


@runtime_checkable
class BlobDestination(Protocol):
    """Where blobs referenced by a converted manifest are committed."""

    def put_blob(self, content: bytes, info: BlobDescriptor) -> BlobDescriptor:
        """Store *content*; return the descriptor it was stored under."""
        ...


class ManifestUpdateOptions(BaseModel):
    """Changes requested from ``GenericManifest.updated_image``."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    layer_infos: list[BlobDescriptor] | None = None
    embedded_reference: str | None = None     # name[:tag]; only schema 1 stores it
    manifest_media_type: str | None = None    # target schema; empty keeps the current one
    destination: BlobDestination | None = None


class ImageInspectInfo(BaseModel):
    """Normalized summary of an image, as shown by ``inspect``."""

    tag: str = ""
    created: datetime | None = None
    docker_version: str = ""
    labels: dict[str, str] = Field(default_factory=dict)
    architecture: str = ""
    variant: str = ""
    os: str = ""
    author: str = ""
    layers: list[str] = Field(default_factory=list)
    env: list[str] = Field(default_factory=list)


class ContainerConfig(BaseModel):
    """The runtime section of an image configuration."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    env: list[str] | None = Field(default=None, alias="Env")
    labels: dict[str, str] | None = Field(default=None, alias="Labels")
    cmd: list[str] | None = Field(default=None, alias="Cmd")
    entrypoint: list[str] | None = Field(default=None, alias="Entrypoint")
    working_dir: str | None = Field(default=None, alias="WorkingDir")


class History(BaseModel):
    """One build step recorded in the image configuration."""

    model_config = ConfigDict(extra="allow")

    created: str | None = None     # kept verbatim; schema 1 history re-emits it
    created_by: str | None = None
    author: str | None = None
    comment: str | None = None
    empty_layer: bool = False

    @field_validator("empty_layer", mode="before")
    @classmethod
    def _null_is_false(cls, value: Any) -> Any:
        return False if value is None else value


class RootFS(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str = ""
    diff_ids: list[str] = Field(default_factory=list)


class ImageConfig(BaseModel):
    """
    An OCI / Docker image configuration document.

    Both flavours share these fields; Docker adds ``docker_version``.
    Unknown fields are kept.
    """

    model_config = ConfigDict(extra="allow")

    created: datetime | None = None
    author: str | None = None
    architecture: str | None = None
    variant: str | None = None
    os: str | None = None
    docker_version: str | None = None
    config: ContainerConfig | None = None
    rootfs: RootFS | None = None
    history: list[History] | None = None

    @field_validator("created", mode="before")
    @classmethod
    def _truncate_created(cls, value: Any) -> Any:
        return _truncate_to_microseconds(value)

"""Fetching, verifying and summarizing image configuration blobs."""

from __future__ import annotations

import logging
from contextlib import closing

from pydantic import ValidationError

from . import digest as digestlib
from .errors import BlobRetrievalError, DigestVerificationError, InspectError
from .models import (
    BlobDescriptor,
    BlobSource,
    ContainerConfig,
    ImageConfig,
    ImageInspectInfo,
)

__all__ = [
    "fetch_config_blob",
    "inspect_config",
    "parse_image_config",
]

logger = logging.getLogger(__name__)


def fetch_config_blob(source: BlobSource | None, info: BlobDescriptor) -> bytes:
    """
    Read the config blob described by *info* from *source* and verify it.

    The bytes must hash to ``info.digest``; a source returning anything
    else gets a ``DigestVerificationError``.
    """
    if source is None:
        raise BlobRetrievalError(
            f"no blob source available to fetch config blob {info.digest}"
        )
    logger.debug("Fetching config blob %s", info.digest)
    try:
        stream, _size = source.get_blob(info.digest)
    except Exception as exc:
        raise BlobRetrievalError(f"fetching config blob {info.digest}: {exc}") from exc
    try:
        with closing(stream):
            blob = stream.read()
    except Exception as exc:
        raise BlobRetrievalError(f"reading config blob {info.digest}: {exc}") from exc

    try:
        verified = digestlib.matches_content(info.digest, blob)
    except ValueError as exc:
        raise DigestVerificationError(
            f"cannot verify config blob against {info.digest!r}: {exc}"
        ) from exc
    if not verified:
        raise DigestVerificationError(
            f"config blob digest mismatch: expected {info.digest}, "
            f"got {digestlib.from_bytes(blob)}"
        )
    logger.debug("Verified config blob %s (%d bytes)", info.digest, len(blob))
    return blob


def parse_image_config(config_blob: bytes) -> ImageConfig:
    try:
        return ImageConfig.model_validate_json(config_blob)
    except ValidationError as exc:
        raise InspectError(f"invalid image configuration: {exc}") from exc


def inspect_config(
    config_blob: bytes, layer_infos: list[BlobDescriptor], tag: str = ""
) -> ImageInspectInfo:
    """
    Project an image configuration into an ``ImageInspectInfo``.

    Layer digests come from the manifest, not from the config's diff IDs.
    """
    config = parse_image_config(config_blob)
    container = config.config or ContainerConfig()
    return ImageInspectInfo(
        tag=tag,
        created=config.created,
        docker_version=config.docker_version or "",
        labels=container.labels or {},
        architecture=config.architecture or "",
        variant=config.variant or "",
        os=config.os or "",
        author=config.author or "",
        layers=[info.digest for info in layer_infos],
        env=container.env or [],
    )

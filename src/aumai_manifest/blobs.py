"""
Content-addressed blob stores.

Both stores satisfy ``BlobSource`` and ``BlobDestination``. The directory
store uses the OCI image-layout convention::

    <root>/
        blobs/<algorithm>/<hex>
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import BinaryIO

from . import digest as digestlib
from .errors import BlobRetrievalError, BlobUploadError
from .models import BlobDescriptor

__all__ = ["DirectoryBlobStore", "MemoryBlobStore"]

logger = logging.getLogger(__name__)

_BLOBS_DIR = "blobs"


def _verified_descriptor(content: bytes, info: BlobDescriptor) -> BlobDescriptor:
    """Check *content* against *info* and return the descriptor it is stored under."""
    if info.digest:
        try:
            matches = digestlib.matches_content(info.digest, content)
        except ValueError as exc:
            raise BlobUploadError(f"cannot store blob: {exc}") from exc
        if not matches:
            raise BlobUploadError(
                f"blob content does not match digest {info.digest}"
            )
        digest = info.digest
    else:
        digest = digestlib.from_bytes(content)
    if info.size not in (-1, len(content)):
        raise BlobUploadError(
            f"blob {digest} is {len(content)} bytes, descriptor says {info.size}"
        )
    return info.model_copy(update={"digest": digest, "size": len(content)})


class MemoryBlobStore:
    """Blobs kept in a dict, keyed by digest."""

    def __init__(self, blobs: dict[str, bytes] | None = None) -> None:
        self._blobs: dict[str, bytes] = dict(blobs or {})

    def __contains__(self, digest: str) -> bool:
        return digest in self._blobs

    def __len__(self) -> int:
        return len(self._blobs)

    def add(self, content: bytes) -> str:
        """Store *content* under its sha256 digest and return the digest."""
        digest = digestlib.from_bytes(content)
        self._blobs[digest] = content
        return digest

    def get_blob(self, digest: str) -> tuple[BinaryIO, int]:
        try:
            content = self._blobs[digest]
        except KeyError:
            raise BlobRetrievalError(f"blob {digest} not found") from None
        return io.BytesIO(content), len(content)

    def put_blob(self, content: bytes, info: BlobDescriptor) -> BlobDescriptor:
        stored = _verified_descriptor(content, info)
        self._blobs.setdefault(stored.digest, content)
        return stored


class DirectoryBlobStore:
    """Blobs under ``<root>/blobs/<algorithm>/<hex>``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def blob_path(self, digest: str) -> Path:
        try:
            algorithm = digestlib.algorithm_of(digest)
            encoded = digestlib.hex_part(digest)
        except ValueError as exc:
            raise BlobRetrievalError(str(exc)) from exc
        return self.root / _BLOBS_DIR / algorithm / encoded

    def get_blob(self, digest: str) -> tuple[BinaryIO, int]:
        path = self.blob_path(digest)
        try:
            size = path.stat().st_size
            stream = path.open("rb")
        except OSError as exc:
            raise BlobRetrievalError(f"blob {digest} not readable: {exc}") from exc
        return stream, size

    def put_blob(self, content: bytes, info: BlobDescriptor) -> BlobDescriptor:
        stored = _verified_descriptor(content, info)
        path = self.blob_path(stored.digest)
        if path.is_file():
            logger.debug("Blob %s already present", stored.digest)
            return stored
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            partial = path.with_name(path.name + ".partial")
            partial.write_bytes(content)
            partial.replace(path)
        except OSError as exc:
            raise BlobUploadError(f"writing blob {stored.digest}: {exc}") from exc
        logger.debug("Stored blob %s (%d bytes)", stored.digest, len(content))
        return stored

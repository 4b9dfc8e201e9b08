"""Tests for aumai_manifest.blobs."""

from __future__ import annotations

from pathlib import Path

import pytest

from aumai_manifest import digest as digestlib
from aumai_manifest.blobs import DirectoryBlobStore, MemoryBlobStore
from aumai_manifest.errors import BlobRetrievalError, BlobUploadError
from aumai_manifest.models import BlobDescriptor, BlobDestination, BlobSource

CONTENT = b"layer bytes"
CONTENT_DIGEST = digestlib.from_bytes(CONTENT)


@pytest.fixture(params=["memory", "directory"])
def store(request: pytest.FixtureRequest, tmp_path: Path) -> MemoryBlobStore | DirectoryBlobStore:
    if request.param == "memory":
        return MemoryBlobStore()
    return DirectoryBlobStore(tmp_path / "layout")


# ---------------------------------------------------------------------------
# Shared behaviour
# ---------------------------------------------------------------------------


class TestBlobStores:
    def test_satisfy_protocols(self, store: MemoryBlobStore | DirectoryBlobStore) -> None:
        assert isinstance(store, BlobSource)
        assert isinstance(store, BlobDestination)

    def test_put_then_get(self, store: MemoryBlobStore | DirectoryBlobStore) -> None:
        stored = store.put_blob(CONTENT, BlobDescriptor(digest=CONTENT_DIGEST, size=len(CONTENT)))
        assert stored.digest == CONTENT_DIGEST
        stream, size = store.get_blob(CONTENT_DIGEST)
        with stream:
            assert stream.read() == CONTENT
        assert size == len(CONTENT)

    def test_put_without_digest_computes_it(
        self, store: MemoryBlobStore | DirectoryBlobStore
    ) -> None:
        stored = store.put_blob(CONTENT, BlobDescriptor(media_type="application/octet-stream"))
        assert stored.digest == CONTENT_DIGEST
        assert stored.size == len(CONTENT)
        assert stored.media_type == "application/octet-stream"

    def test_put_is_idempotent(self, store: MemoryBlobStore | DirectoryBlobStore) -> None:
        info = BlobDescriptor(digest=CONTENT_DIGEST)
        first = store.put_blob(CONTENT, info)
        second = store.put_blob(CONTENT, info)
        assert first == second

    def test_put_rejects_wrong_content(self, store: MemoryBlobStore | DirectoryBlobStore) -> None:
        with pytest.raises(BlobUploadError, match="does not match"):
            store.put_blob(b"other bytes", BlobDescriptor(digest=CONTENT_DIGEST))

    def test_put_rejects_wrong_size(self, store: MemoryBlobStore | DirectoryBlobStore) -> None:
        with pytest.raises(BlobUploadError, match="descriptor says"):
            store.put_blob(CONTENT, BlobDescriptor(digest=CONTENT_DIGEST, size=3))

    def test_put_rejects_malformed_digest(
        self, store: MemoryBlobStore | DirectoryBlobStore
    ) -> None:
        with pytest.raises(BlobUploadError):
            store.put_blob(CONTENT, BlobDescriptor(digest="sha256:short"))

    def test_get_missing(self, store: MemoryBlobStore | DirectoryBlobStore) -> None:
        with pytest.raises(BlobRetrievalError):
            store.get_blob(CONTENT_DIGEST)


# ---------------------------------------------------------------------------
# DirectoryBlobStore layout
# ---------------------------------------------------------------------------


class TestDirectoryBlobStore:
    def test_layout(self, tmp_path: Path) -> None:
        store = DirectoryBlobStore(tmp_path)
        store.put_blob(CONTENT, BlobDescriptor())
        path = tmp_path / "blobs" / "sha256" / digestlib.hex_part(CONTENT_DIGEST)
        assert path.read_bytes() == CONTENT
        assert not list(path.parent.glob("*.partial"))

    def test_reads_existing_layout(self, tmp_path: Path) -> None:
        blob_dir = tmp_path / "blobs" / "sha256"
        blob_dir.mkdir(parents=True)
        (blob_dir / digestlib.hex_part(CONTENT_DIGEST)).write_bytes(CONTENT)
        stream, size = DirectoryBlobStore(tmp_path).get_blob(CONTENT_DIGEST)
        with stream:
            assert stream.read() == CONTENT
        assert size == len(CONTENT)

    def test_malformed_digest(self, tmp_path: Path) -> None:
        with pytest.raises(BlobRetrievalError):
            DirectoryBlobStore(tmp_path).get_blob("../../etc/passwd")


class TestMemoryBlobStore:
    def test_add_and_contains(self) -> None:
        store = MemoryBlobStore()
        digest = store.add(CONTENT)
        assert digest == CONTENT_DIGEST
        assert digest in store
        assert len(store) == 1

    def test_initial_blobs(self) -> None:
        store = MemoryBlobStore({CONTENT_DIGEST: CONTENT})
        assert store.get_blob(CONTENT_DIGEST)[1] == len(CONTENT)

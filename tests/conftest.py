"""Shared test fixtures for aumai-manifest."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from aumai_manifest import media_types as mt
from aumai_manifest.blobs import MemoryBlobStore
from aumai_manifest.image import OCI1Image, Schema1Image, Schema2Image
from aumai_manifest.oci1 import OCI1Descriptor

FIXTURES_DIR = Path(__file__).parent / "fixtures"

LAYER_DIGESTS = [
    "sha256:6a5a5368e0c2d3e5909184fa28ddfd56072e7ff3ee9a945876f7eee5896ef5bb",
    "sha256:1bbf5d58d24c47512e234a5623474acf65ae00d4d1414272a893204f44cc680c",
    "sha256:8f5dc8a4b12c307ac84de90cdd9a7f3915d1be04c9388868ca118831099c67a9",
    "sha256:bbd6b22eb11afce63cc76f6bc41042d99f10d6024c96b655dafba930b8d25909",
    "sha256:960e52ecf8200cbd84e70eb2ad8678f4367e50d14357021872c10fa3fc5935fa",
]
LAYER_SIZES = [51354364, 150, 11739507, 8841833, 291]

CONFIG_DIGEST = "sha256:0db427112c5db21336d024edcc623cddce4d147b1df471eaf5b68cf2707c596c"


# ---------------------------------------------------------------------------
# Raw fixture files
# ---------------------------------------------------------------------------


@pytest.fixture()
def read_fixture() -> Callable[[str], bytes]:
    def _read(name: str) -> bytes:
        return (FIXTURES_DIR / name).read_bytes()

    return _read


@pytest.fixture()
def layer_digests() -> list[str]:
    """Layer digests shared by the five-layer fixtures, base layer first."""
    return list(LAYER_DIGESTS)


@pytest.fixture()
def config_blob(read_fixture: Callable[[str], bytes]) -> bytes:
    """The image configuration referenced by oci1.json and v2s2.manifest.json."""
    return read_fixture("oci1-config.json")


# ---------------------------------------------------------------------------
# Blob stores
# ---------------------------------------------------------------------------


@pytest.fixture()
def blob_store(config_blob: bytes) -> MemoryBlobStore:
    store = MemoryBlobStore()
    store.add(config_blob)
    return store


@pytest.fixture()
def destination() -> MemoryBlobStore:
    return MemoryBlobStore()


# ---------------------------------------------------------------------------
# Parsed manifests
# ---------------------------------------------------------------------------


@pytest.fixture()
def oci1_image(
    read_fixture: Callable[[str], bytes], blob_store: MemoryBlobStore
) -> OCI1Image:
    return OCI1Image.from_manifest(read_fixture("oci1.json"), source=blob_store)


@pytest.fixture()
def schema2_image(
    read_fixture: Callable[[str], bytes], blob_store: MemoryBlobStore
) -> Schema2Image:
    return Schema2Image.from_manifest(
        read_fixture("v2s2.manifest.json"), source=blob_store
    )


@pytest.fixture()
def schema1_image(read_fixture: Callable[[str], bytes]) -> Schema1Image:
    return Schema1Image.from_manifest(read_fixture("schema1.manifest.json"))


@pytest.fixture()
def oci1_from_components(config_blob: bytes) -> OCI1Image:
    """An in-memory OCI manifest carrying its config blob inline."""
    config = OCI1Descriptor(
        media_type=mt.OCI_IMAGE_CONFIG,
        size=5940,
        digest="sha256:9ca4bda0a6b3727a6ffcc43e981cad0f24e2ec79d338f6ba325b4dfd0756fb8f",
    )
    layers = [
        OCI1Descriptor(media_type=mt.OCI_IMAGE_LAYER_GZIP, digest=digest, size=size)
        for digest, size in zip(LAYER_DIGESTS, LAYER_SIZES)
    ]
    return OCI1Image.from_components(config, layers, config_blob=config_blob)

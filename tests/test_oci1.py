"""Tests for aumai_manifest.oci1."""

from __future__ import annotations

import json
from typing import Callable

import pytest

from aumai_manifest import media_types as mt
from aumai_manifest.compression import GZIP, ZSTD, Algorithm, CompressionOperation
from aumai_manifest.errors import (
    ManifestParseError,
    StructuralMismatchError,
    UnsupportedConversionError,
    UnsupportedMediaTypeError,
)
from aumai_manifest.models import BlobDescriptor
from aumai_manifest.oci1 import OCI1, OCI1Descriptor, oci1_from_components, oci1_from_manifest


def _layer_update(
    manifest: OCI1,
    operation: CompressionOperation,
    algorithm: Algorithm | None = None,
) -> list[BlobDescriptor]:
    """Same digests and sizes, with a compression change recorded."""
    return [
        BlobDescriptor(
            digest=layer.digest,
            size=layer.size,
            compression_operation=operation,
            compression_algorithm=algorithm,
        )
        for layer in manifest.layers
    ]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestOCI1FromManifest:
    def test_round_trip(self, read_fixture: Callable[[str], bytes]) -> None:
        original = read_fixture("oci1.json")
        parsed = oci1_from_manifest(original)
        assert json.loads(parsed.serialize()) == json.loads(original)

    def test_fields(self, read_fixture: Callable[[str], bytes]) -> None:
        parsed = oci1_from_manifest(read_fixture("oci1.json"))
        assert parsed.schema_version == 2
        assert parsed.media_type == mt.OCI_IMAGE_MANIFEST
        assert parsed.config.annotations == {"test-annotation-1": "one"}
        assert len(parsed.layers) == 5
        assert parsed.layers[2].urls == ["https://layer.url"]

    def test_unknown_fields_survive(self) -> None:
        doc = {
            "schemaVersion": 2,
            "mediaType": mt.OCI_IMAGE_MANIFEST,
            "config": {
                "mediaType": mt.OCI_IMAGE_CONFIG,
                "size": 2,
                "digest": "sha256:" + "a" * 64,
                "x-extra": True,
            },
            "layers": [],
            "x-top": {"nested": 1},
        }
        parsed = oci1_from_manifest(json.dumps(doc).encode())
        assert json.loads(parsed.serialize()) == doc

    def test_unknown_layer_media_type_still_parses(
        self, read_fixture: Callable[[str], bytes]
    ) -> None:
        parsed = oci1_from_manifest(read_fixture("oci1-invalid-media-type.json"))
        assert parsed.layers[0].media_type == "application/vnd.oci.image.layer.v1.tar+unknown"

    @pytest.mark.parametrize("blob", [b"", b"{", b"[]"])
    def test_rejects_non_objects(self, blob: bytes) -> None:
        with pytest.raises(ManifestParseError):
            oci1_from_manifest(blob)

    @pytest.mark.parametrize("field", ["fsLayers", "history", "manifests"])
    def test_rejects_ambiguous_fields(
        self, read_fixture: Callable[[str], bytes], field: str
    ) -> None:
        raw = json.loads(read_fixture("oci1.json"))
        raw[field] = []
        with pytest.raises(ManifestParseError, match=field):
            oci1_from_manifest(json.dumps(raw).encode())

    def test_rejects_other_media_type(self, read_fixture: Callable[[str], bytes]) -> None:
        with pytest.raises(ManifestParseError, match="mediaType"):
            oci1_from_manifest(read_fixture("v2s2.manifest.json"))

    def test_rejects_bad_digest(self, read_fixture: Callable[[str], bytes]) -> None:
        raw = json.loads(read_fixture("oci1.json"))
        raw["layers"][0]["digest"] = "sha256:nothex"
        with pytest.raises(ManifestParseError):
            oci1_from_manifest(json.dumps(raw).encode())

    def test_missing_config(self) -> None:
        with pytest.raises(ManifestParseError):
            oci1_from_manifest(b'{"schemaVersion": 2, "layers": []}')


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------


class TestOCI1FromComponents:
    def test_sets_media_type(self) -> None:
        config = OCI1Descriptor(
            media_type=mt.OCI_IMAGE_CONFIG, digest="sha256:" + "c" * 64, size=3
        )
        built = oci1_from_components(config, [], {"k": "v"})
        assert built.media_type == mt.OCI_IMAGE_MANIFEST
        assert built.schema_version == 2
        assert built.annotations == {"k": "v"}

    def test_copies_inputs(self) -> None:
        config = OCI1Descriptor(
            media_type=mt.OCI_IMAGE_CONFIG, digest="sha256:" + "c" * 64, size=3
        )
        layer = OCI1Descriptor(
            media_type=mt.OCI_IMAGE_LAYER_GZIP,
            digest="sha256:" + "d" * 64,
            size=4,
            annotations={"a": "b"},
        )
        built = oci1_from_components(config, [layer])
        layer.annotations["a"] = "changed"
        assert built.layers[0].annotations == {"a": "b"}


# ---------------------------------------------------------------------------
# Descriptor accessors
# ---------------------------------------------------------------------------


class TestOCI1Infos:
    def test_config_info(self, read_fixture: Callable[[str], bytes]) -> None:
        info = oci1_from_manifest(read_fixture("oci1.json")).config_info()
        assert info.digest == (
            "sha256:0db427112c5db21336d024edcc623cddce4d147b1df471eaf5b68cf2707c596c"
        )
        assert info.size == 6124
        assert info.media_type == mt.OCI_IMAGE_CONFIG
        assert info.annotations == {"test-annotation-1": "one"}

    def test_layer_infos(
        self, read_fixture: Callable[[str], bytes], layer_digests: list[str]
    ) -> None:
        infos = oci1_from_manifest(read_fixture("oci1.json")).layer_infos()
        assert [info.digest for info in infos] == layer_digests
        assert infos[2].urls == ["https://layer.url"]
        assert infos[3].annotations == {"test-annotation-2": "two"}
        assert all(info.media_type == mt.OCI_IMAGE_LAYER_GZIP for info in infos)


# ---------------------------------------------------------------------------
# update_layer_infos
# ---------------------------------------------------------------------------


class TestOCI1UpdateLayerInfos:
    @pytest.mark.parametrize(
        ("source", "operation", "algorithm", "expected"),
        [
            ("ociv1.manifest.json", CompressionOperation.DECOMPRESS, None,
             "ociv1.uncompressed.manifest.json"),
            ("ociv1.manifest.json", CompressionOperation.COMPRESS, ZSTD,
             "ociv1.zstd.manifest.json"),
            ("ociv1.zstd.manifest.json", CompressionOperation.COMPRESS, GZIP,
             "ociv1.manifest.json"),
            ("ociv1.uncompressed.manifest.json", CompressionOperation.COMPRESS, GZIP,
             "ociv1.manifest.json"),
            ("ociv1.nondistributable.manifest.json", CompressionOperation.COMPRESS, GZIP,
             "ociv1.nondistributable.gzip.manifest.json"),
            ("ociv1.nondistributable.gzip.manifest.json", CompressionOperation.COMPRESS,
             ZSTD, "ociv1.nondistributable.zstd.manifest.json"),
            ("ociv1.nondistributable.zstd.manifest.json", CompressionOperation.DECOMPRESS,
             None, "ociv1.nondistributable.manifest.json"),
        ],
    )
    def test_compression_changes(
        self,
        read_fixture: Callable[[str], bytes],
        source: str,
        operation: CompressionOperation,
        algorithm: Algorithm | None,
        expected: str,
    ) -> None:
        manifest = oci1_from_manifest(read_fixture(source))
        manifest.update_layer_infos(_layer_update(manifest, operation, algorithm))
        assert json.loads(manifest.serialize()) == json.loads(read_fixture(expected))

    def test_replaces_descriptor_fields(self, read_fixture: Callable[[str], bytes]) -> None:
        manifest = oci1_from_manifest(read_fixture("ociv1.manifest.json"))
        new_digest = "sha256:" + "e" * 64
        infos = manifest.layer_infos()
        infos[1] = BlobDescriptor(
            digest=new_digest, size=99, urls=["https://mirror"], annotations={"x": "y"}
        )
        manifest.update_layer_infos(infos)
        layer = manifest.layers[1]
        assert (layer.digest, layer.size) == (new_digest, 99)
        assert layer.media_type == mt.OCI_IMAGE_LAYER_GZIP
        assert layer.urls == ["https://mirror"]
        assert layer.annotations == {"x": "y"}

    def test_preserve_keeps_unknown_media_type(
        self, read_fixture: Callable[[str], bytes]
    ) -> None:
        manifest = oci1_from_manifest(read_fixture("oci1-invalid-media-type.json"))
        manifest.update_layer_infos(manifest.layer_infos())
        assert manifest.layers[0].media_type.endswith("+unknown")

    def test_compressing_unknown_media_type_fails(
        self, read_fixture: Callable[[str], bytes]
    ) -> None:
        manifest = oci1_from_manifest(read_fixture("oci1-invalid-media-type.json"))
        with pytest.raises(UnsupportedMediaTypeError):
            manifest.update_layer_infos(
                _layer_update(manifest, CompressionOperation.COMPRESS, GZIP)
            )

    @pytest.mark.parametrize("delta", [-1, 1])
    def test_layer_count_must_match(
        self, read_fixture: Callable[[str], bytes], delta: int
    ) -> None:
        manifest = oci1_from_manifest(read_fixture("ociv1.manifest.json"))
        infos = manifest.layer_infos()
        infos = infos[:-1] if delta < 0 else infos + [infos[0]]
        with pytest.raises(StructuralMismatchError, match="layer count"):
            manifest.update_layer_infos(infos)

    def test_failure_leaves_manifest_untouched(
        self, read_fixture: Callable[[str], bytes]
    ) -> None:
        original = read_fixture("oci1-all-media-types.json")
        manifest = oci1_from_manifest(original)
        before = manifest.serialize()
        infos = manifest.layer_infos()
        infos[-1] = infos[-1].model_copy(
            update={
                "compression_operation": CompressionOperation.COMPRESS,
                "compression_algorithm": None,
            }
        )
        with pytest.raises(UnsupportedConversionError):
            manifest.update_layer_infos(infos)
        assert manifest.serialize() == before

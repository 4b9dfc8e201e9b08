"""
aumai-manifest quickstart: parse, inspect and convert image manifests.

Run directly from the repository root:

    python examples/quickstart.py

Blobs live in memory, so nothing is written to disk.
"""

from __future__ import annotations

import json
import pathlib

FIXTURES = pathlib.Path(__file__).resolve().parent.parent / "tests" / "fixtures"


# ---------------------------------------------------------------------------
# Demo 1: Parse and inspect an OCI manifest
# ---------------------------------------------------------------------------

def demo_inspect():
    """Load an OCI manifest and summarize the image it describes."""
    print("\n=== Demo 1: Inspect an OCI image manifest ===")

    from aumai_manifest.blobs import MemoryBlobStore
    from aumai_manifest.image import manifest_from_blob

    store = MemoryBlobStore()
    config_digest = store.add((FIXTURES / "oci1-config.json").read_bytes())
    print(f"  Config blob       : {config_digest}")

    image = manifest_from_blob((FIXTURES / "oci1.json").read_bytes(), source=store)
    info = image.inspect()
    print(f"  Media type        : {image.manifest_media_type()}")
    print(f"  Architecture / OS : {info.architecture}/{info.os}")
    print(f"  Created           : {info.created}")
    print(f"  Layers            : {len(info.layers)}")
    return image, store


# ---------------------------------------------------------------------------
# Demo 2: Convert OCI -> Docker schema 2
# ---------------------------------------------------------------------------

def demo_to_schema2(image) -> None:
    """Convert to Docker schema 2; layer media types are remapped."""
    print("\n=== Demo 2: Convert to Docker schema 2 ===")

    from aumai_manifest import media_types
    from aumai_manifest.models import ManifestUpdateOptions

    converted = image.updated_image(
        ManifestUpdateOptions(manifest_media_type=media_types.DOCKER_V2_SCHEMA2)
    )
    for layer in converted.layer_infos():
        print(f"  {layer.digest[:19]}...  {layer.media_type}")


# ---------------------------------------------------------------------------
# Demo 3: Convert OCI -> Docker schema 1
# ---------------------------------------------------------------------------

def demo_to_schema1(image, store) -> None:
    """Schema 1 needs a reference and a place to put the empty layer."""
    print("\n=== Demo 3: Convert to Docker schema 1 ===")

    from aumai_manifest import media_types
    from aumai_manifest.convert import GZIPPED_EMPTY_LAYER_DIGEST
    from aumai_manifest.digest import manifest_digest
    from aumai_manifest.models import ManifestUpdateOptions

    converted = image.updated_image(
        ManifestUpdateOptions(
            manifest_media_type=media_types.DOCKER_V2_SCHEMA1,
            embedded_reference="docker.io/library/httpd:2.4",
            destination=store,
        )
    )
    document = json.loads(converted.serialize())
    print(f"  Name / tag        : {document['name']}:{document['tag']}")
    print(f"  fsLayers          : {len(document['fsLayers'])}")
    print(f"  Empty layer stored: {GZIPPED_EMPTY_LAYER_DIGEST in store}")
    print(f"  Manifest digest   : {manifest_digest(converted.serialize())}")


def main() -> None:
    image, store = demo_inspect()
    demo_to_schema2(image)
    demo_to_schema1(image, store)


if __name__ == "__main__":
    main()

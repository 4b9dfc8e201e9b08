"""CLI entry point for aumai-manifest."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

from . import digest as digestlib
from . import media_types as mt
from .blobs import DirectoryBlobStore
from .errors import ManifestError
from .image import GenericManifest, manifest_from_blob
from .models import ManifestUpdateOptions

logger = logging.getLogger("aumai_manifest")

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]

# Same names skopeo uses for --format.
FORMATS = {
    "oci": mt.OCI_IMAGE_MANIFEST,
    "v2s2": mt.DOCKER_V2_SCHEMA2,
    "v2s1": mt.DOCKER_V2_SCHEMA1,
    "v2s1-signed": mt.DOCKER_V2_SCHEMA1_SIGNED,
}


def configure_logging(level: str = "WARNING") -> None:
    """Send the library's log records to stderr at *level*."""
    lvl_value = logging.getLevelName(level.upper())

    logger.setLevel(lvl_value)
    logger.propagate = False

    fmt = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    formatter = logging.Formatter(fmt, datefmt)

    # Replaced on every call so the handler writes to the current sys.stderr.
    for stale in list(logger.handlers):
        logger.removeHandler(stale)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(lvl_value)
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def _load(manifest_path: str, blobs: str | None) -> GenericManifest:
    source = DirectoryBlobStore(blobs) if blobs else None
    data = Path(manifest_path).read_bytes()
    return manifest_from_blob(data, source=source)


def _fail(exc: Exception) -> None:
    click.echo(f"Error: {exc}", err=True)
    sys.exit(1)


manifest_argument = click.argument(
    "manifest_path", metavar="MANIFEST", type=click.Path(exists=True, dir_okay=False)
)
blobs_option = click.option(
    "--blobs",
    type=click.Path(file_okay=False),
    default=None,
    help="OCI-layout directory holding blobs/<algorithm>/<hex>.",
)


@click.group()
@click.version_option(package_name="aumai-manifest")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    envvar="AUMAI_MANIFEST_LOG_LEVEL",
    help="Verbosity of diagnostics written to stderr.",
)
def main(log_level: str) -> None:
    """AumAI Manifest: inspect and convert OCI and Docker image manifests."""
    configure_logging(log_level)


@main.command("inspect")
@manifest_argument
@blobs_option
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON.")
def inspect_command(manifest_path: str, blobs: str | None, as_json: bool) -> None:
    """Summarize the image a manifest describes."""
    try:
        image = _load(manifest_path, blobs)
        info = image.inspect()
    except ManifestError as exc:
        _fail(exc)

    if as_json:
        click.echo(info.model_dump_json(indent=2))
        return
    click.echo(f"Media type   : {image.manifest_media_type()}")
    if info.tag:
        click.echo(f"Tag          : {info.tag}")
    click.echo(f"Created      : {info.created.isoformat() if info.created else '-'}")
    click.echo(f"Architecture : {info.architecture}")
    if info.variant:
        click.echo(f"Variant      : {info.variant}")
    click.echo(f"OS           : {info.os}")
    if info.docker_version:
        click.echo(f"Docker       : {info.docker_version}")
    if info.author:
        click.echo(f"Author       : {info.author}")
    if info.labels:
        click.echo(f"Labels       : {json.dumps(info.labels, sort_keys=True)}")
    click.echo(f"\nEnv ({len(info.env)}):")
    for entry in info.env:
        click.echo(f"  {entry}")
    click.echo(f"\nLayers ({len(info.layers)}):")
    for layer_digest in info.layers:
        click.echo(f"  {layer_digest}")


@main.command("convert")
@manifest_argument
@click.option(
    "--to",
    "target",
    required=True,
    type=click.Choice(sorted(FORMATS)),
    help="Manifest format to produce.",
)
@click.option(
    "--reference",
    default=None,
    help="Image reference [host/]name[:tag] embedded in schema 1 manifests.",
)
@blobs_option
@click.option(
    "--output",
    "output_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write the converted manifest here instead of stdout.",
)
def convert_command(
    manifest_path: str,
    target: str,
    reference: str | None,
    blobs: str | None,
    output_path: str | None,
) -> None:
    """Convert a manifest to another schema."""
    try:
        image = _load(manifest_path, blobs)
        converted = image.updated_image(
            ManifestUpdateOptions(
                manifest_media_type=FORMATS[target],
                embedded_reference=reference,
                destination=DirectoryBlobStore(blobs) if blobs else None,
            )
        )
    except ManifestError as exc:
        _fail(exc)

    serialized = converted.serialize()
    if output_path:
        Path(output_path).write_bytes(serialized)
        click.echo(f"Wrote {converted.manifest_media_type()} manifest: {output_path}")
        click.echo(f"  Digest : {digestlib.manifest_digest(serialized)}")
    else:
        click.echo(serialized.decode("utf-8"))


@main.command("layers")
@manifest_argument
def layers_command(manifest_path: str) -> None:
    """List the layers of a manifest, base layer first."""
    try:
        image = _load(manifest_path, None)
    except ManifestError as exc:
        _fail(exc)

    layers = image.layer_infos()
    click.echo(f"Layers ({len(layers)}):")
    for info in layers:
        size = str(info.size) if info.size >= 0 else "?"
        click.echo(f"  {info.digest}  {size:>12}  {info.media_type or '-'}")


@main.command("check-media-type")
@click.argument("media_type")
@click.option(
    "--schema",
    type=click.Choice(["oci1", "schema2"]),
    default="oci1",
    show_default=True,
    help="Catalog to check against.",
)
def check_media_type_command(media_type: str, schema: str) -> None:
    """Check a media type against a schema's supported catalog."""
    check = (
        mt.supported_oci1_media_type if schema == "oci1" else mt.supported_schema2_media_type
    )
    try:
        check(media_type)
    except ManifestError as exc:
        _fail(exc)
    click.echo(f"OK  {media_type}")


@main.command("digest")
@manifest_argument
def digest_command(manifest_path: str) -> None:
    """Print the digest a registry would address a manifest by."""
    try:
        click.echo(digestlib.manifest_digest(Path(manifest_path).read_bytes()))
    except ManifestError as exc:
        _fail(exc)


if __name__ == "__main__":
    main()

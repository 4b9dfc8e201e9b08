"""Content digest helpers."""

from __future__ import annotations

import base64
import hashlib
import json
import re

from .errors import ManifestParseError

__all__ = [
    "SUPPORTED_ALGORITHMS",
    "algorithm_of",
    "from_bytes",
    "hex_part",
    "manifest_digest",
    "matches_content",
    "validate",
]

SUPPORTED_ALGORITHMS = {
    "sha256": 64,
    "sha384": 96,
    "sha512": 128,
}

_DIGEST_RE = re.compile(r"^([a-z0-9]+(?:[.+_-][a-z0-9]+)*):([a-zA-Z0-9=_-]+)$")


def from_bytes(data: bytes, algorithm: str = "sha256") -> str:
    """Return '<algorithm>:<hex>' digest for *data*."""
    h = hashlib.new(algorithm)
    h.update(data)
    return f"{algorithm}:{h.hexdigest()}"


def validate(digest: str) -> None:
    """Raise ``ValueError`` unless *digest* is a well-formed, supported digest."""
    match = _DIGEST_RE.match(digest or "")
    if match is None:
        raise ValueError(f"invalid digest format {digest!r}")
    algorithm, encoded = match.groups()
    expected_len = SUPPORTED_ALGORITHMS.get(algorithm)
    if expected_len is None:
        raise ValueError(f"unsupported digest algorithm {algorithm!r}")
    if len(encoded) != expected_len or not re.fullmatch(r"[a-f0-9]+", encoded):
        raise ValueError(f"invalid {algorithm} digest encoding in {digest!r}")


def algorithm_of(digest: str) -> str:
    validate(digest)
    return digest.split(":", 1)[0]


def hex_part(digest: str) -> str:
    validate(digest)
    return digest.split(":", 1)[1]


def matches_content(digest: str, data: bytes) -> bool:
    """True if *data* hashes to *digest* under the digest's own algorithm."""
    return from_bytes(data, algorithm_of(digest)) == digest


def manifest_digest(manifest: bytes) -> str:
    """
    Return the sha256 digest identifying *manifest*.

    Docker schema 1 signed manifests are identified by their payload with
    the JWS signature block removed; the payload length and its final bytes
    are recorded in the protected header of each signature.
    """
    try:
        parsed = json.loads(manifest)
    except ValueError:
        parsed = None
    if (
        isinstance(parsed, dict)
        and parsed.get("schemaVersion") == 1
        and parsed.get("signatures")
    ):
        manifest = _schema1_payload(manifest, parsed["signatures"])
    return from_bytes(manifest)


def _schema1_payload(manifest: bytes, signatures: list) -> bytes:
    try:
        protected = signatures[0]["protected"]
        header = json.loads(_b64url_decode(protected))
        format_length = int(header["formatLength"])
        format_tail = _b64url_decode(header["formatTail"])
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        raise ManifestParseError(
            f"invalid schema 1 signature protected header: {exc}"
        ) from exc
    if format_length < 0 or format_length > len(manifest):
        raise ManifestParseError(
            f"schema 1 signature formatLength {format_length} is out of range"
        )
    return manifest[:format_length] + format_tail


def _b64url_decode(value: str) -> bytes:
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))

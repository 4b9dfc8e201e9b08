"""Helpers shared by the schema-specific manifest documents."""

from __future__ import annotations

import json
import re
from typing import Any, Iterable, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import ManifestParseError

__all__ = [
    "go_json_compact",
    "go_json_dumps",
    "load_json_object",
    "raw_json_members",
    "reject_ambiguous_fields",
    "validate_document",
]

_M = TypeVar("_M", bound=BaseModel)

# Top-level keys that tell the manifest schemas apart.
_DISCRIMINATING_FIELDS = ("config", "fsLayers", "history", "layers", "manifests")

_GO_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}

_JSON_WS = re.compile(r"[ \t\n\r]*")
_DECODER = json.JSONDecoder()


def load_json_object(manifest: bytes) -> dict[str, Any]:
    """Decode *manifest* as a JSON object or raise ``ManifestParseError``."""
    if not manifest:
        raise ManifestParseError("manifest is empty")
    try:
        raw = json.loads(manifest)
    except ValueError as exc:
        raise ManifestParseError(f"manifest is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise ManifestParseError("manifest is not a JSON object")
    return raw


def reject_ambiguous_fields(
    raw: dict[str, Any],
    expected_media_types: Iterable[str],
    allowed_fields: Iterable[str],
) -> None:
    """
    Refuse documents that look like a different manifest schema.

    A ``mediaType`` naming another schema, or any discriminating field not
    in *allowed_fields*, is a parse error.
    """
    expected = set(expected_media_types)
    media_type = raw.get("mediaType")
    if media_type and media_type not in expected:
        raise ManifestParseError(
            f"manifest has mediaType {media_type!r}, expected one of {sorted(expected)}"
        )
    allowed = set(allowed_fields)
    for field in _DISCRIMINATING_FIELDS:
        if field in raw and field not in allowed:
            raise ManifestParseError(
                f"manifest has a {field!r} field, which is not allowed here"
            )


def validate_document(model: type[_M], raw: dict[str, Any]) -> _M:
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        raise ManifestParseError(f"invalid {model.__name__} manifest: {exc}") from exc


def go_json_dumps(value: Any) -> str:
    """
    Encode *value* the way Go's ``encoding/json`` does: compact, UTF-8,
    with ``<``, ``>``, ``&`` and the JS line separators escaped.
    """
    encoded = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    for char, escape in _GO_HTML_ESCAPES.items():
        encoded = encoded.replace(char, escape)
    return encoded


def go_json_compact(raw: str) -> str:
    """Drop insignificant whitespace from JSON text, escaping like ``go_json_dumps``."""
    out: list[str] = []
    in_string = escaped = False
    for char in raw:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char in " \t\n\r":
            continue
        out.append(_GO_HTML_ESCAPES.get(char, char))
    return "".join(out)


def raw_json_members(document: str) -> dict[str, str]:
    """
    Split a JSON object into its keys and the undecoded text of each value.

    Numbers and string escapes stay exactly as written. A repeated key keeps
    its last value, as ``json.loads`` does. Raises ``ValueError`` unless
    *document* is a single JSON object.
    """
    members: dict[str, str] = {}
    pos = _JSON_WS.match(document).end()
    if document[pos:pos + 1] != "{":
        raise ValueError("expected a JSON object")
    pos = _JSON_WS.match(document, pos + 1).end()
    if document[pos:pos + 1] == "}":
        end = pos + 1
    else:
        while True:
            key, pos = _DECODER.raw_decode(document, pos)
            if not isinstance(key, str):
                raise ValueError(f"object key at offset {pos} is not a string")
            pos = _JSON_WS.match(document, pos).end()
            if document[pos:pos + 1] != ":":
                raise ValueError(f"expected ':' at offset {pos}")
            start = _JSON_WS.match(document, pos + 1).end()
            _, pos = _DECODER.raw_decode(document, start)
            members[key] = document[start:pos]
            pos = _JSON_WS.match(document, pos).end()
            separator = document[pos:pos + 1]
            if separator == "}":
                end = pos + 1
                break
            if separator != ",":
                raise ValueError(f"expected ',' or '}}' at offset {pos}")
            pos = _JSON_WS.match(document, pos + 1).end()
    if document[_JSON_WS.match(document, end).end():]:
        raise ValueError("extra data after the JSON object")
    return members

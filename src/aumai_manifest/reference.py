"""Splitting ``[host/]name[:tag]`` image references for schema 1 manifests."""

from __future__ import annotations

import re

__all__ = ["DEFAULT_TAG", "repository_path", "split_name_tag"]

DEFAULT_TAG = "latest"

_TAG_RE = re.compile(r"^[\w][\w.-]{0,127}$")


def repository_path(name: str) -> str:
    """Drop the registry host, if any: ``example.com:5000/ns/repo`` -> ``ns/repo``."""
    first, sep, rest = name.partition("/")
    if sep and ("." in first or ":" in first or first == "localhost"):
        return rest
    return name


def split_name_tag(reference: str, default_tag: str = DEFAULT_TAG) -> tuple[str, str]:
    """
    Split ``host/repo/name:tag`` into ``("repo/name", "tag")``.

    A reference without a tag gets *default_tag*. Digest references are
    rejected because schema 1 can only embed a tag.
    """
    if not reference:
        raise ValueError("empty image reference")
    if "@" in reference:
        raise ValueError(
            f"reference {reference!r} has a digest; schema 1 manifests embed only tags"
        )
    name, tag = reference, default_tag
    colon = reference.rfind(":")
    if colon > reference.rfind("/"):
        name, tag = reference[:colon], reference[colon + 1:]
        if not _TAG_RE.match(tag):
            raise ValueError(f"invalid tag {tag!r} in reference {reference!r}")
    path = repository_path(name)
    if not path:
        raise ValueError(f"reference {reference!r} has no repository name")
    return path, tag

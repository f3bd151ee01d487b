# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Media type parsing and compatibility for request conditions.

Only the parts of a media type that matter for mapping are kept: the
lower-cased ``type/subtype`` pair. Parameters other than ``q`` are ignored.
"""

from __future__ import annotations

__all__ = ["normalize_media_type", "parse_accept", "is_compatible"]


def normalize_media_type(value: str) -> str:
    """Return ``type/subtype`` lower-cased, parameters removed.

    Raises:
        ValueError: If ``value`` is not a ``type/subtype`` string.
    """
    essence = value.split(";", 1)[0].strip().lower()
    if essence == "*":
        return "*/*"
    kind, sep, subtype = essence.partition("/")
    if not sep or not kind or not subtype:
        raise ValueError(f"Invalid media type: {value!r}")
    if kind == "*" and subtype != "*":
        raise ValueError(f"Wildcard type requires wildcard subtype: {value!r}")
    return f"{kind}/{subtype}"


def parse_accept(header: str | None) -> list[str]:
    """Parse an Accept header into media types ordered by quality.

    Invalid entries and entries with ``q=0`` are dropped. A missing or empty
    header accepts everything.
    """
    if not header or not header.strip():
        return ["*/*"]
    weighted: list[tuple[float, int, str]] = []
    for position, chunk in enumerate(header.split(",")):
        if not chunk.strip():
            continue
        params = chunk.split(";")
        try:
            media_type = normalize_media_type(params[0])
        except ValueError:
            continue
        quality = 1.0
        for param in params[1:]:
            key, _, raw = param.partition("=")
            if key.strip().lower() == "q":
                try:
                    quality = float(raw.strip())
                except ValueError:
                    quality = 0.0
        if quality <= 0:
            continue
        weighted.append((-quality, position, media_type))
    return [media_type for _, _, media_type in sorted(weighted)]


def is_compatible(first: str, second: str) -> bool:
    """True if two normalized media types can describe the same content."""
    kind_a, _, sub_a = first.partition("/")
    kind_b, _, sub_b = second.partition("/")
    if "*" in (kind_a, kind_b):
        return True
    if kind_a != kind_b:
        return False
    if "*" in (sub_a, sub_b):
        return True
    if sub_a == sub_b:
        return True
    # structured syntax suffix: application/*+json vs application/vnd.api+json
    suffix_a = sub_a.rpartition("+")[2] if "+" in sub_a else None
    suffix_b = sub_b.rpartition("+")[2] if "+" in sub_b else None
    if sub_a.startswith("*+"):
        return suffix_b == sub_a[2:]
    if sub_b.startswith("*+"):
        return suffix_a == sub_b[2:]
    return False

"""
Hawker Pulse - Deterministic Point IDs

A point feature's ID is derived from its name or code and its coordinates
rounded to 6 decimals (about 0.1 m), so re-ingesting unchanged data upserts the
same rows.
"""

from __future__ import annotations

import re

MAX_SLUG_LENGTH = 60

_WHITESPACE = re.compile(r"\s+")
_NON_SLUG = re.compile(r"[^A-Z0-9_]")


def slugify(value: str) -> str:
    """Upper-case, underscore-separated, alphanumeric slug of at most 60 chars."""
    slug = _WHITESPACE.sub("_", str(value).strip().upper())
    slug = _NON_SLUG.sub("", slug)
    return slug[:MAX_SLUG_LENGTH] or "POINT"


def stable_id(key: str, lon: float, lat: float) -> str:
    """
    Build a point ID such as "TAMPINES_ROUND_MARKET:103.950000,1.350000".

    Args:
        key: Name or source code of the feature
        lon: WGS84 longitude
        lat: WGS84 latitude
    """
    return f"{slugify(key)}:{lon:.6f},{lat:.6f}"

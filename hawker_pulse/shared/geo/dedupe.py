"""
Hawker Pulse - Spatial Deduplication

Collapses near-duplicate point records before they are upserted. Records are
grouped by case-insensitive name; within a group, a record lying within the
radius of an already kept record is dropped (first seen wins). Same-named
points further apart stay distinct, e.g. two exits of one MRT station.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from hawker_pulse.shared.geo.distance import haversine_m

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_M = 30.0


@dataclass
class DedupeResult:
    """Records kept after deduplication plus the number dropped."""

    records: list[dict[str, Any]] = field(default_factory=list)
    dropped: int = 0
    dropped_samples: list[str] = field(default_factory=list)


def name_key(record: Mapping[str, Any]) -> str:
    """Default grouping key: the record name, case-insensitive."""
    return str(record.get("name") or "").strip().casefold()


def dedupe_points(
    records: Sequence[Mapping[str, Any]],
    radius_m: float = DEFAULT_RADIUS_M,
    key: Callable[[Mapping[str, Any]], str] = name_key,
    sample_limit: int = 20,
) -> DedupeResult:
    """
    Drop same-named records within radius_m of a kept record.

    Args:
        records: Records with "lon" and "lat" (WGS84) and a name
        radius_m: Merge distance in metres (inclusive)
        key: Grouping key; records with different keys are never merged
        sample_limit: Maximum number of dropped names kept for audit

    Returns:
        DedupeResult preserving input order of the kept records
    """
    kept_by_key: dict[str, list[tuple[float, float]]] = {}
    result = DedupeResult()

    for record in records:
        group = key(record)
        lon, lat = float(record["lon"]), float(record["lat"])
        representatives = kept_by_key.setdefault(group, [])

        if any(haversine_m(lon, lat, k_lon, k_lat) <= radius_m for k_lon, k_lat in representatives):
            result.dropped += 1
            if len(result.dropped_samples) < sample_limit:
                result.dropped_samples.append(str(record.get("name")))
            continue

        representatives.append((lon, lat))
        result.records.append(dict(record))

    if result.dropped:
        logger.info(
            f"Deduplicated {len(records)} -> {len(result.records)} records",
            extra={"radius_m": radius_m, "dropped": result.dropped},
        )
    return result

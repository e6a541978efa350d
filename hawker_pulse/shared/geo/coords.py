"""
Hawker Pulse - Coordinate Extraction

Sources name their coordinate fields inconsistently. Extraction is an ordered,
explicit list of strategies; each returns Coordinates or None and the first
success wins.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class Coordinates:
    """A raw (x, y) pair in whatever CRS the source used."""

    x: float
    y: float


class CoordinateExtractor(Protocol):
    name: str

    def __call__(self, record: Mapping[str, Any]) -> Coordinates | None: ...


def to_float(value: Any) -> float | None:
    """Parse a numeric field, returning None for blanks, NaN and garbage."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


@dataclass(frozen=True)
class GeometryPointExtractor:
    """GeoJSON Point geometry, e.g. a flattened FeatureCollection feature."""

    field: str = "geometry"
    name: str = "geometry"

    def __call__(self, record: Mapping[str, Any]) -> Coordinates | None:
        geometry = record.get(self.field)
        if not isinstance(geometry, Mapping) or geometry.get("type") != "Point":
            return None
        position = geometry.get("coordinates")
        if not isinstance(position, Sequence) or len(position) < 2:
            return None
        x, y = to_float(position[0]), to_float(position[1])
        if x is None or y is None:
            return None
        return Coordinates(x, y)


@dataclass(frozen=True)
class FieldPairExtractor:
    """Two scalar fields holding x (longitude/easting) and y (latitude/northing)."""

    x_field: str
    y_field: str

    @property
    def name(self) -> str:
        return f"{self.x_field}/{self.y_field}"

    def __call__(self, record: Mapping[str, Any]) -> Coordinates | None:
        x, y = to_float(record.get(self.x_field)), to_float(record.get(self.y_field))
        if x is None or y is None:
            return None
        return Coordinates(x, y)


DEFAULT_EXTRACTORS: tuple[CoordinateExtractor, ...] = (
    GeometryPointExtractor(),
    FieldPairExtractor("Longitude", "Latitude"),
    FieldPairExtractor("LONGITUDE", "LATITUDE"),
    FieldPairExtractor("longitude", "latitude"),
    FieldPairExtractor("lng", "lat"),
    FieldPairExtractor("X", "Y"),
    FieldPairExtractor("x", "y"),
)


def extract_coordinates(
    record: Mapping[str, Any],
    extractors: Sequence[CoordinateExtractor] = DEFAULT_EXTRACTORS,
) -> tuple[Coordinates, str] | None:
    """
    Try each extractor in order.

    Returns:
        (coordinates, extractor name) for the first match, or None
    """
    for extractor in extractors:
        coordinates = extractor(record)
        if coordinates is not None:
            return coordinates, extractor.name
    return None

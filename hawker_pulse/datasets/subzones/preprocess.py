"""
Hawker Pulse - Subzone Preprocessor

Normalizes URA Master Plan subzone features into zone rows.

The URA export hides the subzone attributes in an HTML table inside the
feature's "Description" property:

    <th>SUBZONE_C</th> <td>TMSZ01</td>

Plain attribute properties (SUBZONE_C, SUBZONE_N, ...) are used when present.
Geometries lose any Z coordinate, unclosed rings are closed, and polygons
published in SVY21 are converted vertex by vertex.

Usage:
    preprocessor = SubzonePreprocessor()
    result = preprocessor.run(raw_df, execution_date="2025-01-15")
    zones = preprocessor.get_records()
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

from hawker_pulse.datasets.base import BasePreprocessor, InvalidRowError
from hawker_pulse.datasets.base.preprocessor import CRS_KEY, attribute_lookup, first_field
from hawker_pulse.shared.config import GeoBoundsConfig
from hawker_pulse.shared.geo.crs import CRS, detect_crs, to_wgs84
from hawker_pulse.storage.models import Region

logger = logging.getLogger(__name__)

REGION_CODES = {
    "CR": Region.CENTRAL,
    "ER": Region.EAST,
    "NR": Region.NORTH,
    "NER": Region.NORTH_EAST,
    "WR": Region.WEST,
}


def map_region(region_code: str | None, region_name: str | None) -> Region:
    """Region from its URA code (CR, ER, ...), falling back to the region name."""
    if region_code:
        region = REGION_CODES.get(region_code.strip().upper())
        if region is not None:
            return region

    if region_name:
        name = re.sub(r"[\s-]", "_", region_name.upper())
        if "CENTRAL" in name:
            return Region.CENTRAL
        if "NORTH" in name and "EAST" in name:
            return Region.NORTH_EAST
        if "EAST" in name:
            return Region.EAST
        if "NORTH" in name:
            return Region.NORTH
        if "WEST" in name:
            return Region.WEST

    return Region.UNKNOWN


def _normalize_ring(ring: list[list[float]], crs: CRS) -> list[list[float]]:
    points = []
    for position in ring:
        x, y = float(position[0]), float(position[1])
        if crs == CRS.SVY21:
            x, y = to_wgs84(x, y, crs)
        points.append([x, y])
    if points and points[0] != points[-1]:
        points.append(list(points[0]))
    if len(points) < 4:
        raise InvalidRowError("degenerate_ring")
    return points


def normalize_boundary(geometry: Mapping[str, Any]) -> tuple[dict[str, Any], CRS]:
    """
    Clean a GeoJSON Polygon/MultiPolygon into 2D, closed, WGS84 rings.

    Returns:
        (boundary, CRS detected on the first vertex)

    Raises:
        InvalidRowError: If the geometry is not a usable polygon
    """
    geom_type = geometry.get("type")
    coordinates = geometry.get("coordinates")
    if geom_type not in ("Polygon", "MultiPolygon") or not coordinates:
        raise InvalidRowError("unsupported_geometry", str(geom_type))

    polygons = [coordinates] if geom_type == "Polygon" else coordinates
    try:
        first = polygons[0][0][0]
        crs = detect_crs(float(first[0]), float(first[1]))
        rings = [[_normalize_ring(ring, crs) for ring in polygon] for polygon in polygons]
    except (IndexError, TypeError, ValueError) as e:
        raise InvalidRowError("malformed_coordinates", str(e)) from e

    if geom_type == "Polygon":
        return {"type": "Polygon", "coordinates": rings[0]}, crs
    return {"type": "MultiPolygon", "coordinates": rings}, crs


def _positions(boundary: Mapping[str, Any]) -> list[list[float]]:
    polygons = [boundary["coordinates"]] if boundary["type"] == "Polygon" else boundary["coordinates"]
    return [position for polygon in polygons for ring in polygon for position in ring]


def outside_bounds(boundary: Mapping[str, Any], bounds: GeoBoundsConfig) -> list[float] | None:
    """First vertex of a WGS84 boundary lying outside the bounds, or None."""
    for lon, lat in _positions(boundary):
        if not (bounds.min_lon <= lon <= bounds.max_lon and bounds.min_lat <= lat <= bounds.max_lat):
            return [lon, lat]
    return None


class SubzonePreprocessor(BasePreprocessor):
    """Preprocessor for URA subzone boundaries."""

    def get_dataset_name(self) -> str:
        return "subzones"

    def normalize_row(self, record: dict[str, Any]) -> dict[str, Any] | None:
        attribute = attribute_lookup(record)
        code = attribute("SUBZONE_C", "subzone_c", "SUBZONE_CODE")
        name = attribute("SUBZONE_N", "subzone_n", "SUBZONE_NAME")
        if not code or not name:
            raise InvalidRowError("missing_subzone_code", first_field(record, "Name", "name"))

        geometry = record.get("geometry")
        if not isinstance(geometry, Mapping):
            raise InvalidRowError("missing_geometry", code)

        boundary, crs = normalize_boundary(geometry)

        # Swapped axes and unconverted projections land here
        stray = outside_bounds(boundary, self.config.geo_bounds)
        if stray is not None:
            raise InvalidRowError("out_of_bounds", f"{code} {stray}")

        region_code = attribute("REGION_C", "region_c")
        region_name = attribute("REGION_N", "region_n")

        return {
            "id": code.upper(),
            "name": name,
            "region": map_region(region_code, region_name).value,
            "region_code": region_code,
            "region_name": region_name,
            "boundary": boundary,
            CRS_KEY: crs.value,
        }

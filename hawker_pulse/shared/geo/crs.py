"""
Hawker Pulse - CRS Detection and Conversion

Point sources publish either WGS84 longitude/latitude or SVY21 (Singapore's
Transverse Mercator grid, metres). Detection is purely range-based; conversion
uses pyproj with a fixed SVY21 definition.

Usage:
    from hawker_pulse.shared.geo.crs import CRS, detect_crs, to_wgs84

    crs = detect_crs(28994.5, 29547.4)  # CRS.SVY21
    lon, lat = to_wgs84(28994.5, 29547.4)
"""

from __future__ import annotations

import threading
from enum import StrEnum

from pyproj import Transformer

# SVY21: origin 1°22'02.9154"N 103°50'E, false easting/northing in metres
SVY21_PROJ = (
    "+proj=tmerc +lat_0=1.366666 +lon_0=103.833333 +k=1 "
    "+x_0=28001.642 +y_0=38744.572 +ellps=WGS84 +units=m +no_defs"
)
WGS84_CRS = "EPSG:4326"

# Classification ranges (exclusive bounds)
WGS84_LON_RANGE = (103.0, 105.0)
WGS84_LAT_RANGE = (1.0, 2.0)
SVY21_RANGE = (5000.0, 200000.0)


class CRS(StrEnum):
    """Coordinate systems recognized in source data."""

    WGS84 = "WGS84"
    SVY21 = "SVY21"
    UNKNOWN = "UNKNOWN"


def detect_crs(x: float, y: float) -> CRS:
    """
    Classify a coordinate pair by numeric range.

    Args:
        x: Longitude or easting
        y: Latitude or northing
    """
    if WGS84_LON_RANGE[0] < x < WGS84_LON_RANGE[1] and WGS84_LAT_RANGE[0] < y < WGS84_LAT_RANGE[1]:
        return CRS.WGS84
    if SVY21_RANGE[0] < x < SVY21_RANGE[1] and SVY21_RANGE[0] < y < SVY21_RANGE[1]:
        return CRS.SVY21
    return CRS.UNKNOWN


# pyproj transformers must not be shared between threads
_local = threading.local()


def _inverse_transformer() -> Transformer:
    transformer = getattr(_local, "inverse", None)
    if transformer is None:
        transformer = Transformer.from_crs(SVY21_PROJ, WGS84_CRS, always_xy=True)
        _local.inverse = transformer
    return transformer


def _forward_transformer() -> Transformer:
    transformer = getattr(_local, "forward", None)
    if transformer is None:
        transformer = Transformer.from_crs(WGS84_CRS, SVY21_PROJ, always_xy=True)
        _local.forward = transformer
    return transformer


def convert_svy21(easting: float, northing: float) -> tuple[float, float]:
    """Convert SVY21 easting/northing to WGS84 (lon, lat)."""
    lon, lat = _inverse_transformer().transform(easting, northing)
    return float(lon), float(lat)


def to_svy21(lon: float, lat: float) -> tuple[float, float]:
    """Convert WGS84 (lon, lat) to SVY21 easting/northing."""
    easting, northing = _forward_transformer().transform(lon, lat)
    return float(easting), float(northing)


def to_wgs84(x: float, y: float, crs: CRS | None = None) -> tuple[float, float]:
    """
    Return (lon, lat) for a coordinate pair.

    WGS84 and UNKNOWN pairs pass through unchanged; callers record UNKNOWN in
    their diagnostics.

    Args:
        x: Longitude or easting
        y: Latitude or northing
        crs: Known CRS, detected when omitted
    """
    if crs is None:
        crs = detect_crs(x, y)
    if crs == CRS.SVY21:
        return convert_svy21(x, y)
    return float(x), float(y)

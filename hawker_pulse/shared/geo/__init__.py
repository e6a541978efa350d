"""
Hawker Pulse - Geographic Utilities

Geographic processing shared by the ingestion pipelines and scoring:
- Zone name normalization and alias resolution
- CRS detection and SVY21 -> WGS84 conversion
- Coordinate extraction from heterogeneous records
- Point-in-polygon zone assignment
- Spatial deduplication and distance kernels
"""

from hawker_pulse.shared.geo.assign import Assignment, ZoneAssigner, ZoneBoundaryCache
from hawker_pulse.shared.geo.coords import Coordinates, extract_coordinates
from hawker_pulse.shared.geo.crs import CRS, detect_crs, to_wgs84
from hawker_pulse.shared.geo.dedupe import DedupeResult, dedupe_points
from hawker_pulse.shared.geo.distance import gaussian_kernel, haversine_m
from hawker_pulse.shared.geo.ids import stable_id
from hawker_pulse.shared.geo.names import AliasTable, MatchResult, ZoneNameResolver, normalize_name

__all__ = [
    "AliasTable",
    "Assignment",
    "CRS",
    "Coordinates",
    "DedupeResult",
    "MatchResult",
    "ZoneAssigner",
    "ZoneBoundaryCache",
    "ZoneNameResolver",
    "dedupe_points",
    "detect_crs",
    "extract_coordinates",
    "gaussian_kernel",
    "haversine_m",
    "normalize_name",
    "stable_id",
    "to_wgs84",
]

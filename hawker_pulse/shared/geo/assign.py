"""
Hawker Pulse - Zone Assignment

Maps WGS84 points to zone IDs by point-in-polygon against the zone boundaries.

- ZoneBoundaryCache: an explicit in-memory index of zone boundaries owned by
  whoever runs the pipeline. load() is idempotent; reload() is exclusive and
  waits for in-flight assignments to finish before swapping the index.
- ZoneAssigner: exact containment first (points on an edge count as inside,
  holes are respected), then a single retry with the point expanded to a small
  disk to absorb boundary snapping error in source data.

Zones should not overlap. If they do, the zone that comes first in cache order
(zone ID order as loaded) wins.

Usage:
    cache = ZoneBoundaryCache.from_repository(repository)
    cache.load()
    assigner = ZoneAssigner(cache, buffer_m=5.0)
    zone_id = assigner.assign(103.85, 1.29)
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Hashable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import shapely
from shapely.errors import ShapelyError
from shapely.geometry import Point, shape
from shapely.geometry.base import BaseGeometry
from shapely.strtree import STRtree

from hawker_pulse.shared.geo.distance import metres_to_degrees

if TYPE_CHECKING:
    from hawker_pulse.storage.repository import Repository

logger = logging.getLogger(__name__)

BoundaryLoader = Callable[[], Iterable[tuple[str, Mapping[str, Any] | None]]]


class AssignMethod(StrEnum):
    """How a point was matched to its zone."""

    CONTAINS = "contains"
    BUFFER = "buffer"


@dataclass(frozen=True)
class Assignment:
    """Zone assignment for a single point."""

    zone_id: str | None
    method: AssignMethod | None = None

    @property
    def assigned(self) -> bool:
        return self.zone_id is not None


@dataclass(frozen=True)
class BoundaryIndex:
    """Immutable snapshot of loaded boundaries."""

    zone_ids: tuple[str, ...]
    geometries: tuple[BaseGeometry, ...]
    tree: STRtree
    skipped: tuple[str, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.zone_ids)


class _ReadWriteLock:
    """Many concurrent readers or one writer; a waiting writer blocks new readers."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._writer = True
            while self._readers > 0:
                self._cond.wait()
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def boundary_to_geometry(boundary: Mapping[str, Any]) -> BaseGeometry:
    """Build a valid shapely geometry from a GeoJSON Polygon/MultiPolygon."""
    geometry = shape(boundary)
    if geometry.geom_type not in ("Polygon", "MultiPolygon"):
        raise ValueError(f"Unsupported boundary type: {geometry.geom_type}")
    if not geometry.is_valid:
        geometry = shapely.make_valid(geometry)
    return geometry


class ZoneBoundaryCache:
    """In-memory zone boundary index with explicit load/reload."""

    def __init__(self, loader: BoundaryLoader):
        """
        Args:
            loader: Callable returning (zone_id, GeoJSON boundary or None) pairs
        """
        self._loader = loader
        self._index: BoundaryIndex | None = None
        self._lock = _ReadWriteLock()

    @classmethod
    def from_repository(cls, repository: Repository) -> ZoneBoundaryCache:
        """Cache backed by the zone table."""
        return cls(repository.iter_zone_boundaries)

    @classmethod
    def from_boundaries(cls, boundaries: Mapping[str, Mapping[str, Any] | None]) -> ZoneBoundaryCache:
        """Cache over a fixed mapping of zone ID -> GeoJSON boundary."""
        items = list(boundaries.items())
        return cls(lambda: items)

    @property
    def is_loaded(self) -> bool:
        return self._index is not None

    def load(self) -> int:
        """Load boundaries if not already loaded. Returns the number indexed."""
        if self._index is not None:
            return len(self._index)
        return self.reload()

    def reload(self) -> int:
        """
        Rebuild the index from the loader.

        Blocks until running assignments release the cache, and blocks new
        assignments until the new index is in place.
        """
        with self._lock.write():
            index = self._build_index()
            self._index = index

        logger.info(
            f"Zone boundary cache loaded: {len(index)} zones",
            extra={"zones_indexed": len(index), "zones_without_boundary": len(index.skipped)},
        )
        return len(index)

    def invalidate(self) -> None:
        """Drop the index; the next load() rebuilds it."""
        with self._lock.write():
            self._index = None

    @contextmanager
    def reading(self) -> Iterator[BoundaryIndex]:
        """Hold the cache for reading; reload() waits until the block exits."""
        with self._lock.read():
            if self._index is None:
                raise RuntimeError("Zone boundary cache is not loaded; call load() first")
            yield self._index

    def __len__(self) -> int:
        return len(self._index) if self._index is not None else 0

    def _build_index(self) -> BoundaryIndex:
        zone_ids: list[str] = []
        geometries: list[BaseGeometry] = []
        skipped: list[str] = []

        for zone_id, boundary in self._loader():
            if not boundary:
                skipped.append(zone_id)
                continue
            try:
                geometry = boundary_to_geometry(boundary)
            except (ValueError, TypeError, KeyError, AttributeError, ShapelyError) as e:
                logger.warning(f"Skipping zone {zone_id} with unusable boundary: {e}")
                skipped.append(zone_id)
                continue
            shapely.prepare(geometry)
            zone_ids.append(zone_id)
            geometries.append(geometry)

        return BoundaryIndex(
            zone_ids=tuple(zone_ids),
            geometries=tuple(geometries),
            tree=STRtree(geometries),
            skipped=tuple(skipped),
        )


class ZoneAssigner:
    """Point-in-polygon zone assignment with a boundary buffer retry."""

    def __init__(self, cache: ZoneBoundaryCache, buffer_m: float = 5.0):
        self.cache = cache
        self.buffer_m = buffer_m

    def assign(self, lon: float, lat: float) -> str | None:
        """Zone ID containing the point, or None."""
        return self.assign_detailed(lon, lat).zone_id

    def assign_detailed(self, lon: float, lat: float) -> Assignment:
        """Zone assignment including whether the buffer retry was needed."""
        with self.cache.reading() as index:
            return self._assign(index, lon, lat)

    def assign_many(
        self, points: Iterable[tuple[Hashable, float, float]]
    ) -> dict[Hashable, Assignment]:
        """
        Assign a batch of (key, lon, lat) points under one cache read.

        Returns:
            Mapping of key -> Assignment
        """
        results: dict[Hashable, Assignment] = {}
        with self.cache.reading() as index:
            for key, lon, lat in points:
                results[key] = self._assign(index, lon, lat)
        return results

    def _assign(self, index: BoundaryIndex, lon: float, lat: float) -> Assignment:
        if len(index) == 0:
            return Assignment(zone_id=None)

        point = Point(lon, lat)
        hits = index.tree.query(point, predicate="covered_by")
        if len(hits) > 0:
            return Assignment(zone_id=index.zone_ids[int(hits.min())], method=AssignMethod.CONTAINS)

        if self.buffer_m <= 0:
            return Assignment(zone_id=None)

        disk = point.buffer(metres_to_degrees(self.buffer_m, lat))
        hits = index.tree.query(disk, predicate="intersects")
        if len(hits) > 0:
            return Assignment(zone_id=index.zone_ids[int(hits.min())], method=AssignMethod.BUFFER)

        return Assignment(zone_id=None)

"""
Hawker Pulse - Opportunity Scoring Engine

Computes the hawker centre opportunity score of every zone for one kernel
config and stores the result as a new, immutable score snapshot.

Steps:
1. Zone centroids from the stored boundaries (zones without a usable boundary
   are excluded and listed in the snapshot meta)
2. Population points at their zone centroid, weighted by total
3. Raw demand, supply and accessibility by kernel density (scoring.kernels)
4. Robust z-scores per component (scoring.normalize)
5. Composite H = lambda_demand * z_demand - lambda_supply * z_supply
                 + lambda_mrt * z_access
6. Rank and percentile, highest H first

Usage:
    from hawker_pulse.scoring import OpportunityScoreBuilder

    builder = OpportunityScoreBuilder(repository)
    result = builder.run(config_name="default")
    scores_df = builder.get_data()
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd
from shapely.errors import ShapelyError

from hawker_pulse.alerting.alert_manager import AlertManager
from hawker_pulse.scoring.kernels import KernelParams, PointSet, compute_components
from hawker_pulse.scoring.normalize import percentile_ranks, robust_zscore
from hawker_pulse.shared.config import Settings, get_config
from hawker_pulse.shared.errors import ScoringError
from hawker_pulse.shared.geo.assign import boundary_to_geometry
from hawker_pulse.storage.repository import Repository

logger = logging.getLogger(__name__)

COMPONENTS = ("demand", "supply", "access")


@dataclass
class ScoringResult:
    """Result of a scoring run."""

    kernel_config: str
    snapshot_id: int | None = None
    zones_scored: int = 0
    zones_excluded: int = 0
    duration_seconds: float = 0.0
    success: bool = True
    error_message: str | None = None
    normalization: dict[str, dict[str, Any]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kernel_config": self.kernel_config,
            "snapshot_id": self.snapshot_id,
            "zones_scored": self.zones_scored,
            "zones_excluded": self.zones_excluded,
            "duration_seconds": self.duration_seconds,
            "success": self.success,
            "error_message": self.error_message,
            "normalization": self.normalization,
        }


@dataclass
class ZoneCentroids:
    """Centroids of the zones taking part in a run, in zone ID order."""

    zone_ids: list[str]
    lons: np.ndarray
    lats: np.ndarray
    excluded: list[str]

    def as_lookup(self) -> dict[str, tuple[float, float]]:
        return {
            zone_id: (float(lon), float(lat))
            for zone_id, lon, lat in zip(self.zone_ids, self.lons, self.lats, strict=True)
        }


def zone_centroids(boundaries: Iterable[tuple[str, dict[str, Any] | None]]) -> ZoneCentroids:
    """Centroid of each zone boundary; zones without a usable boundary are excluded."""
    zone_ids: list[str] = []
    lons: list[float] = []
    lats: list[float] = []
    excluded: list[str] = []

    for zone_id, boundary in boundaries:
        if not boundary:
            excluded.append(zone_id)
            continue
        try:
            centroid = boundary_to_geometry(boundary).centroid
        except (ValueError, TypeError, KeyError, AttributeError, ShapelyError) as e:
            logger.warning(f"Excluding zone {zone_id} from scoring: {e}")
            excluded.append(zone_id)
            continue
        if centroid.is_empty:
            excluded.append(zone_id)
            continue
        zone_ids.append(zone_id)
        lons.append(centroid.x)
        lats.append(centroid.y)

    return ZoneCentroids(
        zone_ids=zone_ids,
        lons=np.array(lons, dtype=float),
        lats=np.array(lats, dtype=float),
        excluded=excluded,
    )


class OpportunityScoreBuilder:
    """Builds score snapshots from the stored zones and point datasets."""

    def __init__(
        self,
        repository: Repository,
        config: Settings | None = None,
        alert_manager: AlertManager | None = None,
    ):
        """
        Args:
            repository: Storage access
            config: Configuration object (uses default if not provided)
            alert_manager: Alert sink for failed runs
        """
        self.repository = repository
        self.config = config if config is not None else get_config()
        self.alert_manager = alert_manager if alert_manager is not None else AlertManager(self.config)

    def resolve_kernel_config(self, name: str | None = None) -> dict[str, Any]:
        """
        Stored kernel config by name.

        The configured default is created on first use; any other name must
        already exist.
        """
        defaults = self.config.scoring.kernel
        name = name or defaults.name
        if name == defaults.name:
            return self.repository.get_or_create_kernel_config(
                name, KernelParams.from_defaults(defaults).to_dict(), notes="Configured defaults"
            )

        kernel_config = self.repository.get_kernel_config(name)
        if kernel_config is None:
            raise ScoringError(f"Kernel config not found: {name}")
        return kernel_config

    def run(self, config_name: str | None = None, notes: str | None = None) -> ScoringResult:
        """
        Run a full scoring pass and write a new score snapshot.

        Args:
            config_name: Kernel config name (configured default when omitted)
            notes: Free-text notes stored on the snapshot

        Returns:
            ScoringResult with the new snapshot ID
        """
        start_time = time.time()
        name = config_name or self.config.scoring.kernel.name

        logger.info(f"Starting scoring run with kernel config {name!r}", extra={"kernel_config": name})

        try:
            kernel_config = self.resolve_kernel_config(name)
            scores, meta = self.build_scores(KernelParams.from_mapping(kernel_config))
            meta["duration_ms"] = int((time.time() - start_time) * 1000)
            snapshot_id = self.repository.create_score_snapshot(
                kernel_config_id=kernel_config["id"],
                zone_scores=scores,
                meta=meta,
                notes=notes,
            )
        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                f"Scoring failed: {e}",
                extra={"kernel_config": name, "error": str(e)},
                exc_info=not isinstance(e, ScoringError),
            )
            self.alert_manager.send_scoring_alert(name, str(e))
            return ScoringResult(
                kernel_config=name,
                duration_seconds=duration,
                success=False,
                error_message=str(e),
            )

        duration = time.time() - start_time
        result = ScoringResult(
            kernel_config=name,
            snapshot_id=snapshot_id,
            zones_scored=len(scores),
            zones_excluded=len(meta["excluded_zones"]),
            duration_seconds=duration,
            normalization=meta["normalization"],
        )

        logger.info(
            f"Scoring complete: {len(scores)} zones in snapshot {snapshot_id}",
            extra=result.to_dict(),
        )

        self._data = pd.DataFrame(scores)
        return result

    def build_scores(self, params: KernelParams) -> tuple[list[dict[str, Any]], dict[str, Any]]:
        """
        Compute zone score rows and snapshot meta without writing anything.

        Raises:
            ScoringError: If no zone can be scored, or a component aborts on zero MAD
        """
        scoring = self.config.scoring
        centroids = zone_centroids(self.repository.iter_zone_boundaries())
        if not centroids.zone_ids:
            raise ScoringError("No zones with boundaries to score")

        population, orphaned = self._population_points(centroids)
        supply = PointSet.from_records(self.repository.list_hawker_centres(status="active"), "capacity")
        mrt = PointSet.from_records(self.repository.list_mrt_exits(), "line_count")
        bus = PointSet.from_records(self.repository.list_bus_stops(), "freq_weight")

        raw = compute_components(
            centroids.lons,
            centroids.lats,
            population,
            supply,
            mrt,
            bus,
            params,
            competition_population=scoring.competition_population,
            competition_floor=scoring.competition_floor,
        )

        z: dict[str, np.ndarray] = {}
        normalization: dict[str, dict[str, Any]] = {}
        for component in COMPONENTS:
            z[component], info = robust_zscore(
                raw[component],
                policy=scoring.zero_mad_policy,
                mad_scale=scoring.mad_scale,
                component=component,
            )
            normalization[component] = info.to_dict()

        # Weights reuse the kernel bandwidths
        w_demand, w_supply, w_access = params.lambda_demand, params.lambda_supply, params.lambda_mrt
        h = w_demand * z["demand"] - w_supply * z["supply"] + w_access * z["access"]

        ranks, percentiles = percentile_ranks(centroids.zone_ids, h)

        scores = [
            {
                "zone_id": zone_id,
                "raw_demand": float(raw["demand"][i]),
                "raw_supply": float(raw["supply"][i]),
                "raw_access": float(raw["access"][i]),
                "z_demand": float(z["demand"][i]),
                "z_supply": float(z["supply"][i]),
                "z_access": float(z["access"][i]),
                "score": float(h[i]),
                "w_demand": w_demand,
                "w_supply": w_supply,
                "w_access": w_access,
                "percentile": percentiles[i],
                "rank": ranks[i],
            }
            for i, zone_id in enumerate(centroids.zone_ids)
        ]

        meta = {
            "kernel": params.to_dict(),
            "zero_mad_policy": scoring.zero_mad_policy,
            "zones_scored": len(scores),
            "excluded_zones": centroids.excluded,
            "inputs": {
                "population_points": len(population),
                "population_without_centroid": orphaned,
                "hawker_centres": len(supply),
                "mrt_exits": len(mrt),
                "bus_stops": len(bus),
            },
            "normalization": normalization,
            "competition": {
                "min": float(raw["competition"].min()) if len(supply) else None,
                "mean": float(raw["competition"].mean()) if len(supply) else None,
            },
        }
        return scores, meta

    def get_data(self) -> pd.DataFrame | None:
        """Get the zone scores of the most recent successful run."""
        return getattr(self, "_data", None)

    def _population_points(self, centroids: ZoneCentroids) -> tuple[PointSet, int]:
        lookup = centroids.as_lookup()
        points = []
        orphaned = 0
        for record in self.repository.list_population():
            location = lookup.get(record["zone_id"])
            if location is None:
                orphaned += 1
                continue
            points.append({"lon": location[0], "lat": location[1], "total": record["total"]})
        return PointSet.from_records(points, "total"), orphaned


# =============================================================================
# Convenience Functions
# =============================================================================


def run_scoring(
    config_name: str | None = None,
    notes: str | None = None,
    config: Settings | None = None,
    repository: Repository | None = None,
) -> ScoringResult:
    """
    Convenience function to run scoring on the configured database.

    Args:
        config_name: Kernel config name
        notes: Snapshot notes
        config: Configuration object
        repository: Repository to use (built from config when omitted)

    Returns:
        ScoringResult
    """
    config = config or get_config()
    repository = repository if repository is not None else Repository.from_config(config)
    return OpportunityScoreBuilder(repository, config).run(config_name, notes)


def get_latest_scores(
    repository: Repository, zone_ids: Iterable[str] | None = None
) -> list[dict[str, Any]]:
    """Zone scores of the newest snapshot, best rank first, optionally filtered by zone."""
    snapshot = repository.latest_score_snapshot()
    if snapshot is None:
        return []
    scores = repository.get_zone_scores(snapshot["id"])
    if zone_ids is not None:
        wanted = set(zone_ids)
        scores = [s for s in scores if s["zone_id"] in wanted]
    return scores


def get_scores_by_percentile(repository: Repository, threshold: float) -> list[dict[str, Any]]:
    """Zone scores of the newest snapshot with percentile <= threshold."""
    return [s for s in get_latest_scores(repository) if s["percentile"] <= threshold]

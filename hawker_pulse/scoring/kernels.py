"""
Hawker Pulse - Kernel Density Components

Gaussian kernel density estimates evaluated at zone centroids:

    demand  = sum(population * k(d, lambda_demand))
    supply  = sum(capacity * k(d, lambda_supply) * competition)
    access  = beta_mrt * sum(line_count * k(d, lambda_mrt))
            + beta_bus * sum(freq_weight * k(d, lambda_bus))

where k(d, bw) = exp(-0.5 (d / bw)^2) and d is the haversine distance in
metres. A hawker centre's competition factor is

    max(floor, 1 - nearby_population / competition_population)

with nearby_population the kernel-weighted population within twice the supply
bandwidth of the centre. All sums are dense numpy matrix products; at subzone
scale (about 330 zones, a few thousand points) the matrices stay small.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass
from typing import Any

import numpy as np

from hawker_pulse.shared.config import KernelDefaultsConfig
from hawker_pulse.shared.geo.distance import gaussian_kernel, haversine_matrix


@dataclass(frozen=True)
class KernelParams:
    """Bandwidths (metres) and transit mode weights of one kernel config."""

    lambda_demand: float
    lambda_supply: float
    lambda_mrt: float
    lambda_bus: float
    beta_mrt: float
    beta_bus: float

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> KernelParams:
        return cls(**{name: float(values[name]) for name in cls.__dataclass_fields__})

    @classmethod
    def from_defaults(cls, defaults: KernelDefaultsConfig) -> KernelParams:
        return cls.from_mapping(defaults.model_dump())

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass
class PointSet:
    """Weighted WGS84 points."""

    lons: np.ndarray
    lats: np.ndarray
    weights: np.ndarray

    @classmethod
    def from_records(cls, records: Sequence[Mapping[str, Any]], weight_key: str) -> PointSet:
        return cls(
            lons=np.array([float(r["lon"]) for r in records], dtype=float),
            lats=np.array([float(r["lat"]) for r in records], dtype=float),
            weights=np.array([float(r[weight_key]) for r in records], dtype=float),
        )

    def __len__(self) -> int:
        return len(self.lons)


def kernel_density(
    target_lons: np.ndarray,
    target_lats: np.ndarray,
    points: PointSet,
    bandwidth_m: float,
    weights: np.ndarray | None = None,
) -> np.ndarray:
    """Weighted Gaussian kernel sum of points at each target."""
    if len(points) == 0:
        return np.zeros(len(target_lons), dtype=float)
    distances = haversine_matrix(target_lons, target_lats, points.lons, points.lats)
    w = points.weights if weights is None else weights
    return gaussian_kernel(distances, bandwidth_m) @ w


def competition_factors(
    supply: PointSet,
    population: PointSet,
    bandwidth_m: float,
    competition_population: float = 10000.0,
    floor: float = 0.1,
) -> np.ndarray:
    """Competition factor of each supply point from the population around it."""
    if len(supply) == 0:
        return np.zeros(0, dtype=float)
    if len(population) == 0:
        return np.ones(len(supply), dtype=float)

    distances = haversine_matrix(supply.lons, supply.lats, population.lons, population.lats)
    weights = gaussian_kernel(distances, bandwidth_m) * (distances <= 2 * bandwidth_m)
    nearby = weights @ population.weights
    return np.maximum(floor, 1.0 - nearby / competition_population)


def compute_components(
    centroid_lons: np.ndarray,
    centroid_lats: np.ndarray,
    population: PointSet,
    supply: PointSet,
    mrt: PointSet,
    bus: PointSet,
    params: KernelParams,
    competition_population: float = 10000.0,
    competition_floor: float = 0.1,
) -> dict[str, np.ndarray]:
    """
    Raw demand, supply and accessibility at each zone centroid.

    Returns:
        Dict with "demand", "supply", "access" and the per-supply-point
        "competition" factors
    """
    demand = kernel_density(centroid_lons, centroid_lats, population, params.lambda_demand)

    competition = competition_factors(
        supply,
        population,
        params.lambda_supply,
        competition_population=competition_population,
        floor=competition_floor,
    )
    supply_density = kernel_density(
        centroid_lons,
        centroid_lats,
        supply,
        params.lambda_supply,
        weights=supply.weights * competition,
    )

    access = params.beta_mrt * kernel_density(
        centroid_lons, centroid_lats, mrt, params.lambda_mrt
    ) + params.beta_bus * kernel_density(centroid_lons, centroid_lats, bus, params.lambda_bus)

    return {"demand": demand, "supply": supply_density, "access": access, "competition": competition}

"""
Hawker Pulse - Distance and Kernel Functions

Great-circle distance and the Gaussian distance-decay kernel, in scalar form for
per-record work and numpy form for the scoring engine's all-pairs matrices.
"""

from __future__ import annotations

import math

import numpy as np

EARTH_RADIUS_M = 6371000.0


def haversine_m(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    """Haversine distance in metres between two WGS84 points."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def haversine_matrix(
    lons_a: np.ndarray,
    lats_a: np.ndarray,
    lons_b: np.ndarray,
    lats_b: np.ndarray,
) -> np.ndarray:
    """
    Pairwise haversine distances in metres.

    Returns:
        Array of shape (len(a), len(b))
    """
    phi_a = np.radians(np.asarray(lats_a, dtype=float))[:, None]
    phi_b = np.radians(np.asarray(lats_b, dtype=float))[None, :]
    lam_a = np.radians(np.asarray(lons_a, dtype=float))[:, None]
    lam_b = np.radians(np.asarray(lons_b, dtype=float))[None, :]

    a = np.sin((phi_b - phi_a) / 2) ** 2 + np.cos(phi_a) * np.cos(phi_b) * np.sin((lam_b - lam_a) / 2) ** 2
    a = np.clip(a, 0.0, 1.0)
    return 2 * EARTH_RADIUS_M * np.arctan2(np.sqrt(a), np.sqrt(1 - a))


def gaussian_kernel(distance_m: float | np.ndarray, bandwidth_m: float) -> float | np.ndarray:
    """Gaussian decay: exp(-0.5 * (d / bandwidth)^2)."""
    if bandwidth_m <= 0:
        raise ValueError(f"Kernel bandwidth must be positive, got {bandwidth_m}")
    if isinstance(distance_m, np.ndarray):
        return np.exp(-0.5 * (distance_m / bandwidth_m) ** 2)
    return math.exp(-0.5 * (distance_m / bandwidth_m) ** 2)


def metres_to_degrees(metres: float, lat: float) -> float:
    """
    Approximate a ground distance as degrees at a latitude.

    Takes the smaller of the latitude and longitude scales so that a disk of the
    returned radius spans at least `metres` in every direction.
    """
    lat_scale = 110574.0
    lon_scale = 111320.0 * max(math.cos(math.radians(lat)), 1e-6)
    return metres / min(lat_scale, lon_scale)

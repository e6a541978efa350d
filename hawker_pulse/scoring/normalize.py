"""
Hawker Pulse - Robust Normalization and Ranking

    z = (value - median) / (MAD * 1.4826)

MAD is the median absolute deviation; the 1.4826 factor makes it a consistent
estimator of the standard deviation for normal data. When MAD is zero (all
zones equal, or more than half of them equal) the z-score is undefined and the
configured policy decides:

    zero_fill  every z-score of that component is 0.0 and the event is reported
    abort      ScoringError is raised and no snapshot is written
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import numpy as np

from hawker_pulse.shared.errors import ScoringError

logger = logging.getLogger(__name__)

MAD_SCALE = 1.4826


class ZeroMadPolicy(StrEnum):
    """What to do when a component has zero spread."""

    ZERO_FILL = "zero_fill"
    ABORT = "abort"


@dataclass(frozen=True)
class NormalizationInfo:
    """Statistics behind one component's z-scores."""

    median: float
    mad: float
    zero_mad: bool

    def to_dict(self) -> dict[str, Any]:
        return {"median": self.median, "mad": self.mad, "zero_mad": self.zero_mad}


def robust_zscore(
    values: Sequence[float] | np.ndarray,
    policy: ZeroMadPolicy | str = ZeroMadPolicy.ZERO_FILL,
    mad_scale: float = MAD_SCALE,
    component: str = "value",
) -> tuple[np.ndarray, NormalizationInfo]:
    """
    Robust z-scores of values across zones.

    Args:
        values: One raw value per zone
        policy: Zero-MAD policy
        mad_scale: MAD consistency factor
        component: Component name for errors and logs

    Returns:
        (z-scores, NormalizationInfo)

    Raises:
        ScoringError: If values is empty or contains NaN/inf, or MAD is zero
            under the abort policy
    """
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        raise ScoringError(f"Cannot normalize {component}: no zones to compare")
    if not np.all(np.isfinite(arr)):
        raise ScoringError(f"Cannot normalize {component}: non-finite raw values")

    median = float(np.median(arr))
    mad = float(np.median(np.abs(arr - median)))

    if mad == 0.0:
        if ZeroMadPolicy(policy) == ZeroMadPolicy.ABORT:
            raise ScoringError(f"Median absolute deviation of {component} is zero across {arr.size} zones")
        logger.warning(
            f"Zero MAD for {component} across {arr.size} zones; z-scores filled with 0",
            extra={"component": component, "median": median},
        )
        return np.zeros_like(arr), NormalizationInfo(median=median, mad=0.0, zero_mad=True)

    return (arr - median) / (mad * mad_scale), NormalizationInfo(median=median, mad=mad, zero_mad=False)


def percentile_ranks(zone_ids: Sequence[str], scores: Sequence[float] | np.ndarray) -> tuple[list[int], list[float]]:
    """
    Rank zones by score, highest first, ties broken by zone ID.

    percentile = (N - rank + 1) / N * 100, so rank 1 gets 100 and rank N gets 100 / N.

    Returns:
        (ranks, percentiles) aligned with zone_ids
    """
    n = len(zone_ids)
    order = sorted(range(n), key=lambda i: (-float(scores[i]), zone_ids[i]))

    ranks = [0] * n
    percentiles = [0.0] * n
    for position, i in enumerate(order, start=1):
        ranks[i] = position
        percentiles[i] = (n - position + 1) / n * 100.0
    return ranks, percentiles

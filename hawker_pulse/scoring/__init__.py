"""
Hawker Pulse - Opportunity Scoring

Kernel density estimates of demand, supply and accessibility per zone,
robust z-score normalization, composite score and percentile rank.
"""

from hawker_pulse.scoring.engine import (
    OpportunityScoreBuilder,
    ScoringResult,
    get_latest_scores,
    get_scores_by_percentile,
    run_scoring,
)
from hawker_pulse.scoring.kernels import KernelParams, PointSet, compute_components
from hawker_pulse.scoring.normalize import ZeroMadPolicy, percentile_ranks, robust_zscore

__all__ = [
    "KernelParams",
    "OpportunityScoreBuilder",
    "PointSet",
    "ScoringResult",
    "ZeroMadPolicy",
    "compute_components",
    "get_latest_scores",
    "get_scores_by_percentile",
    "percentile_ranks",
    "robust_zscore",
    "run_scoring",
]

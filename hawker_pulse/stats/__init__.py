"""
Hawker Pulse - Statistics

Quantile breakpoints and summaries over the stored population totals.
"""

from hawker_pulse.stats.quantiles import (
    QuantileResponse,
    QuantileService,
    content_etag,
    population_summary,
    quantile_breaks,
)

__all__ = [
    "QuantileResponse",
    "QuantileService",
    "content_etag",
    "population_summary",
    "quantile_breaks",
]

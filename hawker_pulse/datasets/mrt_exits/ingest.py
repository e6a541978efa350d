"""
Hawker Pulse - MRT Exit Ingester

Fetches LTA MRT/LRT station exit locations.

Data Source:
    Land Transport Authority, LTA MRT Station Exit (GeoJSON)
    https://data.gov.sg/datasets?query=mrt+station+exit

Usage:
    ingester = MrtExitIngester()
    result = ingester.run(execution_date="2025-01-15")
    df = ingester.get_data()
"""

from __future__ import annotations

from hawker_pulse.datasets.base import BaseIngester


class MrtExitIngester(BaseIngester):
    """Ingester for MRT exit points."""

    def get_dataset_name(self) -> str:
        return "mrt_exits"

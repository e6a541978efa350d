"""
Hawker Pulse - Hawker Centre Ingester

Fetches NEA hawker centre locations.

Data Source:
    National Environment Agency, Hawker Centres (GeoJSON/CSV)
    https://data.gov.sg/datasets?query=hawker+centres

Usage:
    ingester = HawkerCentreIngester()
    result = ingester.run(execution_date="2025-01-15")
    df = ingester.get_data()
"""

from __future__ import annotations

from hawker_pulse.datasets.base import BaseIngester


class HawkerCentreIngester(BaseIngester):
    """Ingester for hawker centre points."""

    def get_dataset_name(self) -> str:
        return "hawker_centres"

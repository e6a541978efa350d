"""
Hawker Pulse - Subzone Ingester

Fetches the URA Master Plan 2019 subzone boundaries (GeoJSON).

Data Source:
    URA Master Plan 2019 Subzone Boundary (No Sea)
    https://data.gov.sg/datasets?query=subzone+boundary

Usage:
    ingester = SubzoneIngester()
    result = ingester.run(execution_date="2025-01-15")
    df = ingester.get_data()
"""

from __future__ import annotations

from hawker_pulse.datasets.base import BaseIngester


class SubzoneIngester(BaseIngester):
    """Ingester for URA subzone polygons."""

    def get_dataset_name(self) -> str:
        return "subzones"

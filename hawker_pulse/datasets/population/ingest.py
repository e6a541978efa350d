"""
Hawker Pulse - Population Ingester

Fetches Census 2020 resident population by planning area and subzone.

Data Source:
    Singapore Department of Statistics, Census of Population 2020
    Resident Population by Planning Area/Subzone of Residence
    https://data.gov.sg (CKAN datastore) or a local CSV/JSON export

Usage:
    ingester = PopulationIngester()
    result = ingester.run(execution_date="2025-01-15")
    df = ingester.get_data()
"""

from __future__ import annotations

from typing import Any

from hawker_pulse.datasets.base import BaseIngester


class PopulationIngester(BaseIngester):
    """Ingester for subzone population totals."""

    def get_dataset_name(self) -> str:
        return "population"

    def get_request_params(self) -> dict[str, Any]:
        # CKAN datastore_search caps rows at 100 unless a limit is given
        if self.source.page_size:
            return {"limit": self.source.page_size}
        return {}

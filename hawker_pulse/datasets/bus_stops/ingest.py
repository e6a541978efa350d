"""
Hawker Pulse - Bus Stop Ingester

Fetches bus stops from LTA DataMall, which serves 500 records per call and
pages with the $skip query parameter. Requests need the AccountKey header
(LTA_ACCOUNT_KEY environment variable).

Data Source:
    LTA DataMall BusStops API
    https://datamall2.mytransport.sg/ltaodataservice/BusStops

Usage:
    ingester = BusStopIngester()
    result = ingester.run(execution_date="2025-01-15")
    df = ingester.get_data()
"""

from __future__ import annotations

import logging
from typing import Any

import pandas as pd

from hawker_pulse.datasets.base import BaseIngester, unwrap_payload
from hawker_pulse.datasets.base.ingester import records_to_frame

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 500
MAX_PAGES = 100


class BusStopIngester(BaseIngester):
    """Ingester for LTA bus stops with $skip pagination."""

    def get_dataset_name(self) -> str:
        return "bus_stops"

    def fetch_remote(self, url: str) -> pd.DataFrame:
        """Fetch every page until a short page is returned."""
        page_size = self.source.page_size or DEFAULT_PAGE_SIZE
        all_records: list[dict[str, Any]] = []

        for page in range(MAX_PAGES):
            skip = page * page_size
            response = self._get(url, {**self.get_request_params(), "$skip": skip})
            records = unwrap_payload(response.json())
            all_records.extend(records)

            logger.info(
                f"Got {len(records)} bus stops at offset {skip}. Total so far: {len(all_records)}"
            )
            if len(records) < page_size:
                break
        else:
            logger.warning(f"Stopped bus stop pagination after {MAX_PAGES} pages")

        return records_to_frame(all_records)

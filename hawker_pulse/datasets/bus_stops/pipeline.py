"""
Hawker Pulse - Bus Stop Pipeline

Bus stops are deduplicated by stop code rather than description: many
unrelated stops share descriptions such as "Opp Blk 1".
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from hawker_pulse.datasets.base import PointFeaturePipeline
from hawker_pulse.datasets.bus_stops.ingest import BusStopIngester
from hawker_pulse.datasets.bus_stops.preprocess import BusStopPreprocessor


class BusStopPipeline(PointFeaturePipeline):
    """Bus stop (accessibility) ingestion."""

    def get_dataset_name(self) -> str:
        return "bus_stops"

    def create_ingester(self) -> BusStopIngester:
        return BusStopIngester(self.config)

    def create_preprocessor(self) -> BusStopPreprocessor:
        return BusStopPreprocessor(self.config)

    def dedupe_key(self, row: Mapping[str, Any]) -> str:
        return str(row["stop_code"])

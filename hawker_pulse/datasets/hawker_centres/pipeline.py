"""
Hawker Pulse - Hawker Centre Pipeline

Deduplicates hawker centres by name within the dedupe radius, assigns each to
its subzone and upserts it by stable ID.
"""

from __future__ import annotations

from hawker_pulse.datasets.base import PointFeaturePipeline
from hawker_pulse.datasets.hawker_centres.ingest import HawkerCentreIngester
from hawker_pulse.datasets.hawker_centres.preprocess import HawkerCentrePreprocessor


class HawkerCentrePipeline(PointFeaturePipeline):
    """Hawker centre (supply) ingestion."""

    def get_dataset_name(self) -> str:
        return "hawker_centres"

    def create_ingester(self) -> HawkerCentreIngester:
        return HawkerCentreIngester(self.config)

    def create_preprocessor(self) -> HawkerCentrePreprocessor:
        return HawkerCentrePreprocessor(self.config)

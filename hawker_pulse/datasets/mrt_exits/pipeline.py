"""
Hawker Pulse - MRT Exit Pipeline

Exits of one station share its name, so duplicates are grouped by station name
plus exit code; distinct exits of a station are never merged.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from hawker_pulse.datasets.base import PointFeaturePipeline
from hawker_pulse.datasets.mrt_exits.ingest import MrtExitIngester
from hawker_pulse.datasets.mrt_exits.preprocess import MrtExitPreprocessor
from hawker_pulse.shared.geo.dedupe import name_key


class MrtExitPipeline(PointFeaturePipeline):
    """MRT exit (accessibility) ingestion."""

    def get_dataset_name(self) -> str:
        return "mrt_exits"

    def create_ingester(self) -> MrtExitIngester:
        return MrtExitIngester(self.config)

    def create_preprocessor(self) -> MrtExitPreprocessor:
        return MrtExitPreprocessor(self.config)

    def dedupe_key(self, row: Mapping[str, Any]) -> str:
        return f"{name_key(row)}|{str(row.get('exit_code') or '').casefold()}"

"""
Hawker Pulse - Subzone Pipeline

Upserts the zone registry from URA subzone boundaries and reloads the shared
zone boundary cache so later point pipelines assign against the new
boundaries. Zones are never deleted.

Usage:
    pipeline = SubzonePipeline(repository, boundary_cache=cache)
    result = pipeline.run()
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from hawker_pulse.datasets.base import BasePipeline, ProcessOutcome
from hawker_pulse.datasets.subzones.ingest import SubzoneIngester
from hawker_pulse.datasets.subzones.preprocess import SubzonePreprocessor
from hawker_pulse.storage.models import Region

logger = logging.getLogger(__name__)


class SubzonePipeline(BasePipeline):
    """Zone registry ingestion."""

    def get_dataset_name(self) -> str:
        return "subzones"

    def create_ingester(self) -> SubzoneIngester:
        return SubzoneIngester(self.config)

    def create_preprocessor(self) -> SubzonePreprocessor:
        return SubzonePreprocessor(self.config)

    def process(self, rows: list[dict[str, Any]]) -> ProcessOutcome:
        outcome = ProcessOutcome()
        inserted = updated = 0
        unknown_regions: set[str] = set()

        for row in rows:
            if row["region"] == Region.UNKNOWN and (row.get("region_code") or row.get("region_name")):
                unknown_regions.add(f"{row.get('region_code') or '?'} ({row.get('region_name') or '?'})")

            try:
                stats = self.repository.upsert_zones([row])
            except SQLAlchemyError as e:
                outcome.errors += 1
                if len(outcome.error_samples) < self.error_sample_limit:
                    outcome.error_samples.append(f"{row['id']}: {type(e).__name__}: {e}")
                logger.warning(f"Zone upsert failed for {row['id']}: {e}")
                continue
            inserted += stats.inserted
            updated += stats.updated

        indexed = self.boundary_cache.reload()

        outcome.counts.update(
            {
                "inserted": inserted,
                "updated": updated,
                "zones_indexed": indexed,
                "unknown_regions": len(unknown_regions),
            }
        )
        outcome.samples["unknown_regions"] = sorted(unknown_regions)[: self.sample_limit]

        if unknown_regions:
            logger.warning(
                f"Unrecognized regions in subzone data: {sorted(unknown_regions)}",
                extra={"unknown_regions": sorted(unknown_regions)},
            )
        return outcome
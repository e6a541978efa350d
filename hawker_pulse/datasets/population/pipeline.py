"""
Hawker Pulse - Population Pipeline

Matches census rows to zones by normalized name (aliases first, then the
exact name index) and applies all matched totals in one atomic batch that
never moves a zone back to an older census year.

Unmatched rows are appended to the unmatched_records audit table; they never
fail the run, but a match rate under the configured threshold makes it
partial.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any

from hawker_pulse.datasets.base import BasePipeline, ProcessOutcome
from hawker_pulse.datasets.population.ingest import PopulationIngester
from hawker_pulse.datasets.population.preprocess import PopulationPreprocessor
from hawker_pulse.shared.geo.names import ZoneNameResolver

logger = logging.getLogger(__name__)


class PopulationPipeline(BasePipeline):
    """Population ingestion with name matching."""

    def get_dataset_name(self) -> str:
        return "population"

    def create_ingester(self) -> PopulationIngester:
        return PopulationIngester(self.config)

    def create_preprocessor(self) -> PopulationPreprocessor:
        return PopulationPreprocessor(self.config)

    def process(self, rows: list[dict[str, Any]]) -> ProcessOutcome:
        dataset = self.get_dataset_name()
        outcome = ProcessOutcome()

        zone_names = self.repository.get_zone_names()
        resolver = ZoneNameResolver(zone_names, self.aliases)

        batch: list[dict[str, Any]] = []
        unmatched: list[dict[str, Any]] = []
        confidence: Counter = Counter()

        for row in rows:
            match = resolver.resolve(row["normalized_name"])
            if match.matched:
                confidence[str(match.confidence)] += 1
                batch.append(
                    {
                        "zone_id": match.zone_id,
                        "zone_name": zone_names[match.zone_id],
                        "year": row["year"],
                        "total": row["total"],
                    }
                )
            else:
                unmatched.append(
                    {
                        "dataset": dataset,
                        "source_key": row["source_key"],
                        "raw_name": row["raw_name"],
                        "normalized_name": row["normalized_name"],
                        "reason": match.reason,
                        "details": {"year": row["year"], "total": row["total"]},
                    }
                )

        stats = self.repository.apply_population_batch(batch)
        recorded = self.repository.add_unmatched(unmatched)

        matched = len(batch)
        outcome.counts.update(
            {
                "matched": matched,
                "matched_by_alias": confidence["alias"],
                "matched_direct": confidence["direct"],
                "unmatched": len(unmatched),
                "unmatched_recorded": recorded,
                "inserted": stats.inserted,
                "updated": stats.updated,
                "kept_newer_year": stats.skipped,
            }
        )
        outcome.samples["unmatched"] = [u["normalized_name"] for u in unmatched[: self.sample_limit]]
        outcome.match_rate = matched / len(rows) if rows else None

        if not zone_names:
            logger.warning("Zone registry is empty; run the subzones pipeline before population")

        logger.info(
            f"Population matched {matched}/{len(rows)} rows "
            f"({confidence['alias']} by alias, {len(unmatched)} unmatched)",
            extra={"dataset": dataset, **outcome.counts},
        )
        return outcome

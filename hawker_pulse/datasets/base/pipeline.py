"""
Hawker Pulse - Base Pipeline

Runs one dataset kind to completion through its stages:

    fetch -> normalize -> (dedupe) -> match/assign -> upsert

and writes exactly one IngestionSnapshot per run, whatever the outcome. The
snapshot meta carries per-stage counts, the CRS breakdown, bounded samples of
invalid/unmatched names and errors, and the run duration.

Status rules:
    failed   no source was readable, zero rows were processed, or a stage raised
    partial  any row-level error, or a match/assignment rate below the threshold
    success  otherwise

Usage:
    pipeline = HawkerCentrePipeline(repository, boundary_cache=cache)
    result = pipeline.run()
    print(result.status, result.snapshot_id)
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from hawker_pulse.alerting.alert_manager import AlertManager
from hawker_pulse.datasets.base.ingester import BaseIngester
from hawker_pulse.datasets.base.preprocessor import BasePreprocessor
from hawker_pulse.shared.config import Settings, get_config
from hawker_pulse.shared.geo.assign import AssignMethod, ZoneAssigner, ZoneBoundaryCache
from hawker_pulse.shared.geo.dedupe import dedupe_points, name_key
from hawker_pulse.shared.geo.names import AliasTable
from hawker_pulse.storage.models import SnapshotStatus, utcnow
from hawker_pulse.storage.repository import Repository

logger = logging.getLogger(__name__)


@dataclass
class ProcessOutcome:
    """Counts and samples from the match/assign and upsert stages."""

    counts: dict[str, Any] = field(default_factory=dict)
    match_rate: float | None = None
    errors: int = 0
    error_samples: list[str] = field(default_factory=list)
    samples: dict[str, list[str]] = field(default_factory=dict)


@dataclass
class PipelineResult:
    """Result of a full pipeline run."""

    dataset: str
    status: str
    snapshot_id: int | None = None
    source_url: str | None = None
    counts: dict[str, Any] = field(default_factory=dict)
    duration_seconds: float = 0.0
    error_message: str | None = None

    @property
    def success(self) -> bool:
        return self.status != SnapshotStatus.FAILED

    def to_dict(self) -> dict[str, Any]:
        return {
            "dataset": self.dataset,
            "status": self.status,
            "snapshot_id": self.snapshot_id,
            "source_url": self.source_url,
            "counts": self.counts,
            "duration_seconds": self.duration_seconds,
            "error_message": self.error_message,
        }


def derive_status(
    source_available: bool,
    processed: int,
    errors: int,
    match_rate: float | None,
    threshold: float = 0.5,
) -> SnapshotStatus:
    """
    Final status of an ingestion run.

    Args:
        source_available: Whether any source returned data
        processed: Rows that survived normalization
        errors: Row-level errors during normalize/match/upsert
        match_rate: Matched or assigned share, None when not applicable
        threshold: Minimum match rate for success
    """
    if not source_available or processed == 0:
        return SnapshotStatus.FAILED
    if errors > 0:
        return SnapshotStatus.PARTIAL
    if match_rate is not None and match_rate < threshold:
        return SnapshotStatus.PARTIAL
    return SnapshotStatus.SUCCESS


class BasePipeline(ABC):
    """
    Abstract base class for a dataset's ingestion pipeline.

    Subclasses must implement:
    - get_dataset_name(): Dataset kind
    - create_ingester(): Fetch stage
    - create_preprocessor(): Normalize stage
    - process(): Match/assign and upsert stages
    """

    def __init__(
        self,
        repository: Repository,
        config: Settings | None = None,
        boundary_cache: ZoneBoundaryCache | None = None,
        aliases: AliasTable | None = None,
        alert_manager: AlertManager | None = None,
    ):
        """
        Args:
            repository: Storage access
            config: Configuration object (uses default if not provided)
            boundary_cache: Zone boundary cache shared across pipelines of one run
            aliases: Zone name alias table
            alert_manager: Alert sink for partial/failed runs
        """
        self.repository = repository
        self.config = config if config is not None else get_config()
        self.boundary_cache = (
            boundary_cache if boundary_cache is not None else ZoneBoundaryCache.from_repository(repository)
        )
        self.aliases = aliases if aliases is not None else AliasTable.load(self.config)
        self.alert_manager = alert_manager if alert_manager is not None else AlertManager(self.config)
        self.sample_limit = self.config.ingestion.sample_limit
        self.error_sample_limit = self.config.ingestion.error_sample_limit

    @abstractmethod
    def get_dataset_name(self) -> str:
        pass

    @abstractmethod
    def create_ingester(self) -> BaseIngester:
        pass

    @abstractmethod
    def create_preprocessor(self) -> BasePreprocessor:
        pass

    @abstractmethod
    def process(self, rows: list[dict[str, Any]]) -> ProcessOutcome:
        """
        Match/assign and upsert normalized rows.

        Row-level failures are counted in the outcome; anything raised fails
        the run.
        """
        pass

    def run(self, execution_date: str | None = None) -> PipelineResult:
        """
        Run all stages and record the snapshot.

        Args:
            execution_date: Execution date in YYYY-MM-DD format (defaults to today)

        Returns:
            PipelineResult with the final status and snapshot ID
        """
        dataset = self.get_dataset_name()
        execution_date = execution_date or datetime.now(UTC).strftime("%Y-%m-%d")
        started_at = utcnow()
        start_time = time.time()

        logger.info(
            f"Starting {dataset} pipeline",
            extra={"dataset": dataset, "execution_date": execution_date},
        )

        meta: dict[str, Any] = {"execution_date": execution_date, "source": None, "counts": {}}
        source_url: str | None = None
        error_message: str | None = None

        try:
            source_url, status = self._run_stages(execution_date, meta)
        except Exception as e:
            logger.error(
                f"{dataset} pipeline failed: {e}",
                extra={"dataset": dataset, "error": str(e)},
                exc_info=True,
            )
            status = SnapshotStatus.FAILED
            meta["error"] = {"type": type(e).__name__, "message": str(e)}

        if "error" in meta:
            error_message = meta["error"]["message"]

        duration = time.time() - start_time
        meta["duration_ms"] = int(duration * 1000)

        snapshot_id = self.repository.record_snapshot(
            kind=dataset,
            source_url=source_url,
            started_at=started_at,
            finished_at=utcnow(),
            status=status.value,
            meta=meta,
        )

        result = PipelineResult(
            dataset=dataset,
            status=status.value,
            snapshot_id=snapshot_id,
            source_url=source_url,
            counts={**meta["counts"], "match_rate": meta.get("match_rate")},
            duration_seconds=duration,
            error_message=error_message,
        )

        log = logger.info if status == SnapshotStatus.SUCCESS else logger.warning
        log(f"{dataset} pipeline finished: {status.value}", extra=result.to_dict())

        self.alert_manager.send_pipeline_alert(result)
        return result

    def _run_stages(
        self, execution_date: str, meta: dict[str, Any]
    ) -> tuple[str | None, SnapshotStatus]:
        ingester = self.create_ingester()
        fetch = ingester.run(execution_date)
        meta["stages"] = {"fetch": {"rows": fetch.rows_fetched, "duration_seconds": fetch.duration_seconds}}

        if not fetch.success:
            meta["error"] = {
                "type": fetch.error_type,
                "message": fetch.error_message,
                "attempts": fetch.metadata.get("attempts", []),
            }
            return None, SnapshotStatus.FAILED

        meta["source"] = fetch.source
        meta["source_path"] = fetch.source_path
        source_url = fetch.source

        df = ingester.get_data()
        preprocessor = self.create_preprocessor()
        normalized = preprocessor.run(df, execution_date)
        if not normalized.success:
            meta["error"] = {"type": "PreprocessingError", "message": normalized.error_message}
            return source_url, SnapshotStatus.FAILED

        counters = normalized.counters
        rows = preprocessor.get_records()
        meta["counts"] = {
            "fetched": fetch.rows_fetched,
            "processed": counters["processed"],
            "invalid": counters["invalid"],
            "skipped": counters["skipped"],
        }
        meta["crs_stats"] = counters["crs"]
        meta["extractors"] = counters["extractors"]
        meta["invalid_reasons"] = counters["invalid_reasons"]
        meta["samples"] = {"invalid": counters["invalid_samples"]}

        outcome = self.process(rows) if rows else ProcessOutcome()

        errors = counters["errors"] + outcome.errors
        meta["counts"].update(outcome.counts)
        meta["counts"]["errors"] = errors
        meta["samples"].update(outcome.samples)
        meta["error_samples"] = (counters["error_samples"] + outcome.error_samples)[
            : self.error_sample_limit
        ]
        meta["error_count"] = errors
        meta["match_rate"] = outcome.match_rate

        status = derive_status(
            source_available=True,
            processed=counters["processed"],
            errors=errors,
            match_rate=outcome.match_rate,
            threshold=self.config.ingestion.match_rate_threshold,
        )
        return source_url, status


class PointFeaturePipeline(BasePipeline):
    """
    Pipeline for point datasets: dedupe, assign to zones, upsert per record.

    Subclasses may override dedupe_key() to group duplicates by more than the
    name (e.g. station name plus exit code).
    """

    def dedupe_key(self, row: Mapping[str, Any]) -> str:
        return name_key(row)

    def process(self, rows: list[dict[str, Any]]) -> ProcessOutcome:
        dataset = self.get_dataset_name()
        ingestion = self.config.ingestion
        outcome = ProcessOutcome()

        deduped = dedupe_points(
            rows,
            radius_m=ingestion.dedupe_radius_m,
            key=self.dedupe_key,
            sample_limit=self.sample_limit,
        )
        records = deduped.records
        outcome.counts["deduped"] = len(records)
        outcome.counts["duplicates_dropped"] = deduped.dropped
        outcome.samples["duplicates"] = deduped.dropped_samples

        self.boundary_cache.load()
        assigner = ZoneAssigner(self.boundary_cache, buffer_m=ingestion.boundary_buffer_m)
        assignments = assigner.assign_many(
            (i, record["lon"], record["lat"]) for i, record in enumerate(records)
        )

        assigned = by_buffer = inserted = updated = 0
        unassigned: list[str] = []

        for i, record in enumerate(records):
            assignment = assignments[i]
            record["zone_id"] = assignment.zone_id
            if assignment.assigned:
                assigned += 1
                if assignment.method == AssignMethod.BUFFER:
                    by_buffer += 1
            elif len(unassigned) < self.sample_limit:
                unassigned.append(str(record.get("name")))

            try:
                if self.repository.upsert_point(dataset, record):
                    inserted += 1
                else:
                    updated += 1
            except SQLAlchemyError as e:
                outcome.errors += 1
                if len(outcome.error_samples) < self.error_sample_limit:
                    outcome.error_samples.append(f"{record.get('id')}: {type(e).__name__}: {e}")
                logger.warning(f"Upsert failed for {dataset} {record.get('id')}: {e}")

        outcome.counts.update(
            {
                "assigned": assigned,
                "assigned_by_buffer": by_buffer,
                "unassigned": len(records) - assigned,
                "inserted": inserted,
                "updated": updated,
            }
        )
        outcome.samples["unassigned"] = unassigned
        outcome.match_rate = assigned / len(records) if records else None

        logger.info(
            f"{dataset}: {assigned}/{len(records)} points assigned to zones "
            f"({by_buffer} by boundary buffer), {inserted} inserted, {updated} updated",
            extra={"dataset": dataset, **outcome.counts},
        )
        return outcome

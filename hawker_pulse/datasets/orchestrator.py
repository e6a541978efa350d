"""
Hawker Pulse - Ingestion Orchestrator

Owns the zone boundary cache and the alias table for one ingestion run and
drives the dataset pipelines.

Subzones always run first because every other dataset is matched or assigned
against the zone registry. The remaining pipelines are independent and can run
in parallel; a failure in one never stops the others.

Usage:
    from hawker_pulse.datasets.orchestrator import IngestionOrchestrator

    orchestrator = IngestionOrchestrator(repository)
    results = orchestrator.run_all(parallel=True)

    # Or a single dataset
    result = run_pipeline("bus_stops")
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor

from hawker_pulse.alerting.alert_manager import AlertManager
from hawker_pulse.datasets.base import BasePipeline, PipelineResult
from hawker_pulse.datasets.bus_stops import BusStopPipeline
from hawker_pulse.datasets.hawker_centres import HawkerCentrePipeline
from hawker_pulse.datasets.mrt_exits import MrtExitPipeline
from hawker_pulse.datasets.population import PopulationPipeline
from hawker_pulse.datasets.subzones import SubzonePipeline
from hawker_pulse.shared.config import Settings, get_config
from hawker_pulse.shared.geo.assign import ZoneBoundaryCache
from hawker_pulse.shared.geo.names import AliasTable
from hawker_pulse.storage.database import is_single_connection
from hawker_pulse.storage.models import DatasetKind
from hawker_pulse.storage.repository import Repository

logger = logging.getLogger(__name__)

PIPELINES: dict[str, type[BasePipeline]] = {
    DatasetKind.SUBZONES.value: SubzonePipeline,
    DatasetKind.POPULATION.value: PopulationPipeline,
    DatasetKind.HAWKER_CENTRES.value: HawkerCentrePipeline,
    DatasetKind.MRT_EXITS.value: MrtExitPipeline,
    DatasetKind.BUS_STOPS.value: BusStopPipeline,
}

RUN_ORDER = tuple(PIPELINES)


class IngestionOrchestrator:
    """Runs dataset pipelines against one repository."""

    def __init__(
        self,
        repository: Repository,
        config: Settings | None = None,
        aliases: AliasTable | None = None,
        alert_manager: AlertManager | None = None,
    ):
        self.repository = repository
        self.config = config if config is not None else get_config()
        self.aliases = aliases if aliases is not None else AliasTable.load(self.config)
        self.alert_manager = alert_manager if alert_manager is not None else AlertManager(self.config)
        self.boundary_cache = ZoneBoundaryCache.from_repository(repository)

    def create_pipeline(self, kind: str) -> BasePipeline:
        """Build the pipeline for a dataset kind sharing this run's cache and aliases."""
        try:
            pipeline_cls = PIPELINES[kind]
        except KeyError:
            raise ValueError(f"Unknown dataset kind: {kind}. Must be one of: {list(PIPELINES)}") from None

        return pipeline_cls(
            self.repository,
            config=self.config,
            boundary_cache=self.boundary_cache,
            aliases=self.aliases,
            alert_manager=self.alert_manager,
        )

    def run(self, kind: str, execution_date: str | None = None) -> PipelineResult:
        """Run one dataset pipeline to completion."""
        return self.create_pipeline(kind).run(execution_date)

    def run_all(
        self,
        kinds: Iterable[str] | None = None,
        execution_date: str | None = None,
        parallel: bool = False,
    ) -> dict[str, PipelineResult]:
        """
        Run several pipelines; subzones first, then the rest.

        Args:
            kinds: Dataset kinds to run (all when omitted)
            execution_date: Execution date in YYYY-MM-DD format
            parallel: Run the non-subzone pipelines on a thread pool (ignored
                when the database is a single shared connection)

        Returns:
            Mapping of dataset kind -> PipelineResult, in run order
        """
        selected = list(kinds) if kinds is not None else list(RUN_ORDER)
        unknown = [k for k in selected if k not in PIPELINES]
        if unknown:
            raise ValueError(f"Unknown dataset kinds: {unknown}")

        ordered = [k for k in RUN_ORDER if k in selected]
        results: dict[str, PipelineResult] = {}

        if DatasetKind.SUBZONES.value in ordered:
            results[DatasetKind.SUBZONES.value] = self.run(DatasetKind.SUBZONES.value, execution_date)
            ordered.remove(DatasetKind.SUBZONES.value)

        # Every point pipeline reads the same boundaries; load them once up front
        self.boundary_cache.load()

        if parallel and is_single_connection(self.repository.engine):
            logger.warning("Database uses a single shared connection; running pipelines sequentially")
            parallel = False

        if parallel and len(ordered) > 1:
            workers = min(len(ordered), max(1, self.config.ingestion.max_workers))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="pipeline") as pool:
                futures = {kind: pool.submit(self.run, kind, execution_date) for kind in ordered}
                for kind in ordered:
                    results[kind] = futures[kind].result()
        else:
            for kind in ordered:
                results[kind] = self.run(kind, execution_date)

        summary = {kind: result.status for kind, result in results.items()}
        logger.info(f"Ingestion run complete: {summary}", extra={"statuses": summary})
        return results


# =============================================================================
# Convenience Functions
# =============================================================================


def run_pipeline(
    kind: str,
    execution_date: str | None = None,
    config: Settings | None = None,
    repository: Repository | None = None,
) -> PipelineResult:
    """
    Convenience function to run one dataset pipeline on the configured database.

    Args:
        kind: Dataset kind
        execution_date: Execution date in YYYY-MM-DD format
        config: Configuration object
        repository: Repository to write to (built from config when omitted)

    Returns:
        PipelineResult
    """
    config = config or get_config()
    repository = repository if repository is not None else Repository.from_config(config)
    return IngestionOrchestrator(repository, config).run(kind, execution_date)

"""
Hawker Pulse - Ingestion Script

Runs one dataset pipeline, or all of them in dependency order, against the
configured database and prints the outcome of each run.

Usage:
    python scripts/ingest.py all
    python scripts/ingest.py population --date 2026-03-01
    python scripts/ingest.py all --parallel --env prod
"""

from __future__ import annotations

import argparse
import logging
import sys

from hawker_pulse.datasets.orchestrator import RUN_ORDER, IngestionOrchestrator
from hawker_pulse.shared.config import get_config
from hawker_pulse.shared.logging_config import configure_logging
from hawker_pulse.storage.repository import Repository

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run Hawker Pulse ingestion pipelines")
    parser.add_argument("kind", choices=[*RUN_ORDER, "all"], help="Dataset kind, or 'all'")
    parser.add_argument("--date", dest="execution_date", help="Execution date (YYYY-MM-DD)")
    parser.add_argument("--env", dest="environment", help="Config environment (dev, prod)")
    parser.add_argument("--parallel", action="store_true", help="Run point datasets concurrently")
    parser.add_argument("--log-level", help="Override the configured log level")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Run the requested pipelines. Returns 1 if any run failed."""
    args = parse_args(argv)
    config = get_config(args.environment)
    configure_logging(config, level=args.log_level)

    repository = Repository.from_config(config)
    orchestrator = IngestionOrchestrator(repository, config)

    kinds = None if args.kind == "all" else [args.kind]
    results = orchestrator.run_all(kinds, execution_date=args.execution_date, parallel=args.parallel)

    print("\n" + "=" * 60)
    print("INGESTION SUMMARY")
    print("=" * 60)
    for kind, result in results.items():
        counts = result.counts
        print(
            f"  {kind:<16} {result.status:<8} snapshot={result.snapshot_id} "
            f"processed={counts.get('processed', 0)} invalid={counts.get('invalid', 0)} "
            f"errors={counts.get('errors', 0)}"
        )
        if result.error_message:
            print(f"    error: {result.error_message}")
    print("=" * 60 + "\n")

    return 0 if all(result.success for result in results.values()) else 1


if __name__ == "__main__":
    sys.exit(main())

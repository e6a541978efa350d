"""
Hawker Pulse - Diagnostics

Point-in-time status of the database: table sizes, the last ingestion run of
each dataset, the unmatched-name backlog and one sample row per table.

Usage:
    from hawker_pulse.shared.diagnostics import get_system_status

    status = get_system_status(repository)
    print(status["datasets"]["population"]["status"])
"""

from __future__ import annotations

import logging
from typing import Any

from hawker_pulse.storage.models import DatasetKind
from hawker_pulse.storage.repository import Repository

logger = logging.getLogger(__name__)


def _sample(rows: list[dict[str, Any]]) -> dict[str, Any] | None:
    if not rows:
        return None
    sample = dict(rows[0])
    # Boundaries are large; the sample only needs to show one exists
    if "boundary" in sample:
        sample["boundary"] = sample["boundary"] is not None
    return sample


def get_system_status(repository: Repository) -> dict[str, Any]:
    """
    Collect database diagnostics.

    Returns:
        Dict with "tables" (row counts), "datasets" (latest run per kind),
        "unmatched" (backlog size), "latest_score_snapshot" and "samples"
    """
    counts = repository.table_counts()

    datasets: dict[str, dict[str, Any] | None] = {}
    for kind in DatasetKind:
        latest = repository.list_snapshots(kind=kind.value, limit=1)
        if not latest:
            datasets[kind.value] = None
            continue
        snapshot = latest[0]
        datasets[kind.value] = {
            "snapshot_id": snapshot["id"],
            "status": snapshot["status"],
            "finished_at": snapshot["finished_at"],
            "match_rate": (snapshot.get("meta") or {}).get("match_rate"),
        }

    score_snapshot = repository.latest_score_snapshot()

    samples = {
        "zones": _sample(repository.list_zones()[:1]),
        "population": _sample(repository.list_population()[:1]),
        "hawker_centres": _sample(repository.list_hawker_centres(status=None)[:1]),
        "mrt_exits": _sample(repository.list_mrt_exits()[:1]),
        "bus_stops": _sample(repository.list_bus_stops()[:1]),
        "unmatched_records": _sample(repository.list_unmatched(limit=1)),
    }

    status = {
        "tables": counts,
        "datasets": datasets,
        "unmatched": counts.get("unmatched_records", 0),
        "latest_score_snapshot": (
            {"id": score_snapshot["id"], "created_at": score_snapshot["created_at"]}
            if score_snapshot
            else None
        ),
        "samples": samples,
    }

    logger.debug("Collected system status", extra={"tables": counts})
    return status

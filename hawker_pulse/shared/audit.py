"""
Hawker Pulse - Ingestion Audit Trail

Read-side helpers over the ingestion snapshot history. Every pipeline run
writes exactly one snapshot; these queries are how data-quality regressions
between runs are diagnosed.

Usage:
    from hawker_pulse.shared.audit import AuditTrail

    audit = AuditTrail(repository)
    history = audit.get_history("population", limit=10)
    diff = audit.compare_runs("population", history[1]["id"], history[0]["id"])
    audit.print_run_summary(history[0]["id"])
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any

from hawker_pulse.storage.repository import Repository

logger = logging.getLogger(__name__)


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class SnapshotDiff:
    """Difference between two ingestion snapshots of the same dataset."""

    kind: str
    older_id: int
    newer_id: int
    status_change: dict[str, str] | None = None
    count_changes: dict[str, dict[str, Any]] = field(default_factory=dict)
    crs_changes: dict[str, dict[str, Any]] = field(default_factory=dict)
    match_rate_change: dict[str, float | None] | None = None

    @property
    def has_changes(self) -> bool:
        return bool(
            self.status_change or self.count_changes or self.crs_changes or self.match_rate_change
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _counter_changes(older: dict[str, Any], newer: dict[str, Any]) -> dict[str, dict[str, Any]]:
    changes = {}
    for key in sorted(set(older) | set(newer)):
        before = older.get(key, 0)
        after = newer.get(key, 0)
        if before != after:
            changes[key] = {"from": before, "to": after, "delta": after - before}
    return changes


# =============================================================================
# AuditTrail Class
# =============================================================================


class AuditTrail:
    """Queries over the ingestion snapshot history."""

    def __init__(self, repository: Repository):
        self.repository = repository

    def get_history(self, kind: str, limit: int = 30) -> list[dict[str, Any]]:
        """Snapshots of a dataset kind, newest first."""
        return self.repository.list_snapshots(kind=kind, limit=limit)

    def get_latest(self, kind: str) -> dict[str, Any] | None:
        history = self.get_history(kind, limit=1)
        return history[0] if history else None

    def compare_runs(self, kind: str, older_id: int, newer_id: int) -> SnapshotDiff:
        """
        Compare two snapshots of the same dataset.

        Shows what changed between two runs: status, per-stage counts,
        CRS breakdown and match rate.

        Args:
            kind: Dataset kind
            older_id: Earlier snapshot ID
            newer_id: Later snapshot ID

        Returns:
            SnapshotDiff with all changes

        Raises:
            ValueError: If either snapshot is missing or belongs to another kind
        """
        older = self.repository.get_snapshot(older_id)
        newer = self.repository.get_snapshot(newer_id)

        for snapshot_id, snapshot in ((older_id, older), (newer_id, newer)):
            if snapshot is None:
                raise ValueError(f"Snapshot not found: {snapshot_id}")
            if snapshot["kind"] != kind:
                raise ValueError(f"Snapshot {snapshot_id} is a {snapshot['kind']} run, not {kind}")

        diff = SnapshotDiff(kind=kind, older_id=older_id, newer_id=newer_id)

        if older["status"] != newer["status"]:
            diff.status_change = {"from": older["status"], "to": newer["status"]}

        older_meta = older.get("meta") or {}
        newer_meta = newer.get("meta") or {}

        diff.count_changes = _counter_changes(older_meta.get("counts", {}), newer_meta.get("counts", {}))
        diff.crs_changes = _counter_changes(older_meta.get("crs_stats", {}), newer_meta.get("crs_stats", {}))

        rate_before = older_meta.get("match_rate")
        rate_after = newer_meta.get("match_rate")
        if rate_before != rate_after:
            diff.match_rate_change = {"from": rate_before, "to": rate_after}

        return diff

    def compare_latest(self, kind: str) -> SnapshotDiff | None:
        """Diff of the two most recent runs of a dataset, if there are two."""
        history = self.get_history(kind, limit=2)
        if len(history) < 2:
            logger.warning(f"Cannot compare: fewer than two {kind} runs recorded")
            return None
        return self.compare_runs(kind, history[1]["id"], history[0]["id"])

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def print_run_summary(self, snapshot_id: int) -> None:
        """Print a human-readable summary of one ingestion run."""
        snapshot = self.repository.get_snapshot(snapshot_id)

        if snapshot is None:
            print(f"No snapshot found with ID {snapshot_id}")
            return

        meta = snapshot.get("meta") or {}

        print(f"\n{'='*60}")
        print(f"INGESTION RUN: {snapshot['kind']} / #{snapshot_id}")
        print(f"{'='*60}")
        print(f"Status: {snapshot['status']}")
        print(f"Source: {snapshot.get('source_url') or meta.get('source_path') or 'N/A'}")
        print(f"Started: {snapshot['started_at']}")
        print(f"Finished: {snapshot['finished_at']}")
        print(f"Duration: {meta.get('duration_ms', 'N/A')} ms")

        print("\n--- Counts ---")
        for key, value in (meta.get("counts") or {}).items():
            print(f"  {key}: {value}")

        if meta.get("crs_stats"):
            print("\n--- CRS ---")
            for crs, count in meta["crs_stats"].items():
                print(f"  {crs}: {count}")

        print(f"\nMatch rate: {meta.get('match_rate', 'N/A')}")
        if meta.get("error"):
            print(f"Error: {meta['error']}")
        print(f"{'='*60}\n")

"""
Unit tests for the ingestion audit trail and system diagnostics.
"""

from datetime import UTC, datetime

import pytest

from hawker_pulse.shared.audit import AuditTrail
from hawker_pulse.shared.diagnostics import get_system_status


def _record(repository, kind, status, counts, crs=None, match_rate=None):
    now = datetime.now(UTC)
    meta = {"counts": counts, "crs_stats": crs or {}, "match_rate": match_rate, "duration_ms": 12}
    return repository.record_snapshot(kind, None, now, now, status, meta)


@pytest.fixture
def audit(repository):
    return AuditTrail(repository)


class TestAuditTrail:
    """Test cases for AuditTrail."""

    def test_history_newest_first(self, audit, repository):
        """Test history is per kind, newest first."""
        first = _record(repository, "bus_stops", "success", {"processed": 10})
        second = _record(repository, "bus_stops", "success", {"processed": 11})
        _record(repository, "mrt_exits", "success", {"processed": 3})

        assert [s["id"] for s in audit.get_history("bus_stops")] == [second, first]
        assert audit.get_latest("bus_stops")["id"] == second
        assert audit.get_latest("subzones") is None

    def test_compare_runs(self, audit, repository):
        """Test status, count, CRS and match rate changes."""
        older = _record(
            repository, "hawker_centres", "success", {"processed": 100, "invalid": 0}, {"WGS84": 100}, 0.98
        )
        newer = _record(
            repository,
            "hawker_centres",
            "partial",
            {"processed": 90, "invalid": 0, "errors": 2},
            {"WGS84": 60, "SVY21": 30},
            0.4,
        )

        diff = audit.compare_runs("hawker_centres", older, newer)

        assert diff.has_changes
        assert diff.status_change == {"from": "success", "to": "partial"}
        assert diff.count_changes == {
            "errors": {"from": 0, "to": 2, "delta": 2},
            "processed": {"from": 100, "to": 90, "delta": -10},
        }
        assert diff.crs_changes["SVY21"] == {"from": 0, "to": 30, "delta": 30}
        assert diff.match_rate_change == {"from": 0.98, "to": 0.4}
        assert diff.to_dict()["kind"] == "hawker_centres"

    def test_no_changes(self, audit, repository):
        """Test identical runs produce an empty diff."""
        older = _record(repository, "population", "success", {"processed": 5}, match_rate=1.0)
        newer = _record(repository, "population", "success", {"processed": 5}, match_rate=1.0)

        assert not audit.compare_runs("population", older, newer).has_changes

    def test_compare_missing_snapshot(self, audit, repository):
        """Test comparing with a missing snapshot raises."""
        snapshot_id = _record(repository, "population", "success", {})
        with pytest.raises(ValueError, match="not found"):
            audit.compare_runs("population", snapshot_id, 999)

    def test_compare_wrong_kind(self, audit, repository):
        """Test comparing snapshots of another dataset raises."""
        a = _record(repository, "population", "success", {})
        b = _record(repository, "subzones", "success", {})
        with pytest.raises(ValueError):
            audit.compare_runs("population", a, b)

    def test_compare_latest(self, audit, repository):
        """Test the two most recent runs are compared oldest to newest."""
        assert audit.compare_latest("bus_stops") is None

        first = _record(repository, "bus_stops", "failed", {})
        second = _record(repository, "bus_stops", "success", {"processed": 4})

        diff = audit.compare_latest("bus_stops")

        assert (diff.older_id, diff.newer_id) == (first, second)
        assert diff.status_change == {"from": "failed", "to": "success"}

    def test_print_run_summary(self, audit, repository, capsys):
        """Test the printed summary names the run and its counts."""
        snapshot_id = _record(repository, "mrt_exits", "success", {"processed": 7}, {"WGS84": 7}, 1.0)

        audit.print_run_summary(snapshot_id)
        audit.print_run_summary(12345)

        out = capsys.readouterr().out
        assert f"mrt_exits / #{snapshot_id}" in out
        assert "processed: 7" in out
        assert "No snapshot found with ID 12345" in out


class TestSystemStatus:
    """Test cases for get_system_status."""

    def test_empty_database(self, repository):
        """Test an empty database reports zero counts and no runs."""
        status = get_system_status(repository)

        assert status["tables"]["zones"] == 0
        assert status["datasets"]["subzones"] is None
        assert status["latest_score_snapshot"] is None
        assert status["samples"]["zones"] is None

    def test_populated_database(self, seeded_repository):
        """Test runs, backlog and samples are reported."""
        snapshot_id = _record(seeded_repository, "population", "partial", {"processed": 4}, match_rate=0.25)
        seeded_repository.add_unmatched([{"dataset": "population", "raw_name": "X", "reason": "no match"}])

        status = get_system_status(seeded_repository)

        assert status["tables"]["zones"] == 4
        assert status["datasets"]["population"]["snapshot_id"] == snapshot_id
        assert status["datasets"]["population"]["match_rate"] == 0.25
        assert status["unmatched"] == 1
        assert status["samples"]["zones"]["id"] == "ZA"
        assert status["samples"]["zones"]["boundary"] is True
        assert status["samples"]["unmatched_records"]["raw_name"] == "X"

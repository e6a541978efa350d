"""
Unit tests for the dataset pipelines.

Each test writes local source files into a temporary data directory and runs a
pipeline end to end against an in-memory repository.
"""

from unittest.mock import MagicMock

import pytest

from hawker_pulse.datasets.base import derive_status
from hawker_pulse.datasets.bus_stops import BusStopPipeline
from hawker_pulse.datasets.hawker_centres import HawkerCentrePipeline
from hawker_pulse.datasets.mrt_exits import MrtExitPipeline
from hawker_pulse.datasets.population import PopulationPipeline
from hawker_pulse.datasets.subzones import SubzonePipeline
from hawker_pulse.shared.geo.names import AliasTable
from hawker_pulse.storage.models import SnapshotStatus

ZONES_CSV = "Subzone,Total\nAlpha Park,1000\nBravo Heights,5000\nCharlie Grove,20000\nDelta Vale,8000\n"

# About 5.6 m of latitude
NEARBY = 0.00005


@pytest.fixture
def alert_manager():
    return MagicMock()


@pytest.fixture
def feature_collection():
    def _make(*features):
        return {"type": "FeatureCollection", "features": list(features)}

    return _make


def _pipeline(cls, repository, config, aliases, alert_manager):
    return cls(repository, config=config, aliases=aliases, alert_manager=alert_manager)


class TestDeriveStatus:
    """Test cases for derive_status."""

    @pytest.mark.parametrize(
        "available, processed, errors, match_rate, expected",
        [
            (False, 0, 0, None, SnapshotStatus.FAILED),
            (True, 0, 0, None, SnapshotStatus.FAILED),
            (True, 10, 1, 1.0, SnapshotStatus.PARTIAL),
            (True, 10, 0, 0.49, SnapshotStatus.PARTIAL),
            (True, 10, 0, 0.5, SnapshotStatus.SUCCESS),
            (True, 10, 0, None, SnapshotStatus.SUCCESS),
        ],
    )
    def test_rules(self, available, processed, errors, match_rate, expected):
        """Test failed, partial and success rules."""
        assert derive_status(available, processed, errors, match_rate) == expected


class TestSubzonePipeline:
    """Test cases for SubzonePipeline."""

    @pytest.fixture
    def subzone_file(self, write_data_file, make_square, feature_collection):
        features = [
            {
                "type": "Feature",
                "properties": {"SUBZONE_C": code, "SUBZONE_N": name, "REGION_C": "CR"},
                "geometry": make_square(lon, lat),
            }
            for code, name, lon, lat in [
                ("ZA", "Alpha Park", 103.80, 1.30),
                ("ZB", "Bravo Heights", 103.81, 1.30),
                ("ZC", "Charlie Grove", 103.80, 1.31),
                ("ZD", "Delta Vale", 103.81, 1.31),
            ]
        ]
        features.append({"type": "Feature", "properties": {"SUBZONE_N": "No Code"}, "geometry": None})
        return write_data_file("ura_subzones_2019.geojson", feature_collection(*features))

    def test_registers_zones(self, repository, test_config, empty_aliases, alert_manager, subzone_file):
        """Test zones are upserted and the run succeeds."""
        pipeline = _pipeline(SubzonePipeline, repository, test_config, empty_aliases, alert_manager)

        result = pipeline.run(execution_date="2025-01-15")

        assert result.status == "success"
        assert result.counts["inserted"] == 4
        assert result.counts["invalid"] == 1
        assert result.counts["zones_indexed"] == 4
        assert repository.get_zone("ZA")["region"] == "CENTRAL"

        snapshot = repository.get_snapshot(result.snapshot_id)
        assert snapshot["kind"] == "subzones"
        assert snapshot["meta"]["crs_stats"] == {"WGS84": 4}
        assert snapshot["meta"]["invalid_reasons"] == {"missing_subzone_code": 1}

    def test_out_of_bounds_zone_is_invalid(
        self, repository, test_config, empty_aliases, alert_manager, write_data_file, make_square, feature_collection
    ):
        """Test a swapped-axis boundary is counted invalid and not stored."""
        square = make_square(103.81, 1.30)
        swapped = {"type": "Polygon", "coordinates": [[[lat, lon] for lon, lat in square["coordinates"][0]]]}
        write_data_file(
            "ura_subzones_2019.geojson",
            feature_collection(
                {
                    "type": "Feature",
                    "properties": {"SUBZONE_C": "ZA", "SUBZONE_N": "Alpha Park"},
                    "geometry": make_square(103.80, 1.30),
                },
                {
                    "type": "Feature",
                    "properties": {"SUBZONE_C": "ZB", "SUBZONE_N": "Bravo Heights"},
                    "geometry": swapped,
                },
            ),
        )
        pipeline = _pipeline(SubzonePipeline, repository, test_config, empty_aliases, alert_manager)

        result = pipeline.run()

        assert result.status == "success"
        assert result.counts["invalid"] == 1
        assert [z["id"] for z in repository.list_zones()] == ["ZA"]
        snapshot = repository.get_snapshot(result.snapshot_id)
        assert snapshot["meta"]["invalid_reasons"] == {"out_of_bounds": 1}

    def test_idempotent(self, repository, test_config, empty_aliases, alert_manager, subzone_file):
        """Test a re-run updates instead of duplicating."""
        pipeline = _pipeline(SubzonePipeline, repository, test_config, empty_aliases, alert_manager)
        pipeline.run()

        result = pipeline.run()

        assert result.counts["updated"] == 4
        assert len(repository.list_zones()) == 4
        assert len(repository.list_snapshots("subzones")) == 2

    def test_no_source(self, repository, test_config, empty_aliases, alert_manager):
        """Test a missing source records a failed snapshot and alerts."""
        pipeline = _pipeline(SubzonePipeline, repository, test_config, empty_aliases, alert_manager)

        result = pipeline.run()

        assert result.status == "failed"
        assert "No data source available" in result.error_message
        snapshot = repository.get_snapshot(result.snapshot_id)
        assert snapshot["status"] == "failed"
        assert snapshot["meta"]["error"]["type"] == "SourceUnavailableError"
        alert_manager.send_pipeline_alert.assert_called_once_with(result)


class TestPopulationPipeline:
    """Test cases for PopulationPipeline."""

    def _run(self, repository, config, aliases, alert_manager):
        return _pipeline(PopulationPipeline, repository, config, aliases, alert_manager).run()

    def test_all_matched(self, seeded_repository, test_config, empty_aliases, alert_manager, write_data_file):
        """Test every zone name matches directly."""
        write_data_file("census_2020_population.csv", ZONES_CSV)

        result = self._run(seeded_repository, test_config, empty_aliases, alert_manager)

        assert result.status == "success"
        assert result.counts["matched"] == 4
        assert result.counts["match_rate"] == 1.0
        assert seeded_repository.population_totals() == [1000, 5000, 8000, 20000]

    def test_unmatched_are_recorded(
        self, seeded_repository, test_config, empty_aliases, alert_manager, write_data_file
    ):
        """Test unmatched names are written for audit without failing the run."""
        write_data_file("census_2020_population.csv", ZONES_CSV + "Atlantis,300\n")

        result = self._run(seeded_repository, test_config, empty_aliases, alert_manager)

        assert result.status == "success"
        assert result.counts["unmatched"] == 1
        unmatched = seeded_repository.list_unmatched("population")
        assert unmatched[0]["normalized_name"] == "ATLANTIS"
        assert unmatched[0]["details"] == {"year": 2020, "total": 300}

    def test_low_match_rate_is_partial(
        self, seeded_repository, test_config, empty_aliases, alert_manager, write_data_file
    ):
        """Test a match rate under the threshold makes the run partial."""
        write_data_file("census_2020_population.csv", "Subzone,Total\nAlpha Park,1\nX,1\nY,1\nZ,1\n")

        result = self._run(seeded_repository, test_config, empty_aliases, alert_manager)

        assert result.status == "partial"
        assert result.counts["match_rate"] == 0.25
        alert_manager.send_pipeline_alert.assert_called_once()

    def test_alias_match(self, seeded_repository, test_config, alert_manager, write_data_file):
        """Test names are matched through the alias table."""
        write_data_file("census_2020_population.csv", "Subzone,Total\nAlpha Pk,1000\n")
        aliases = AliasTable({"Alpha Pk": "ZA"})

        result = self._run(seeded_repository, test_config, aliases, alert_manager)

        assert result.counts["matched_by_alias"] == 1
        assert seeded_repository.list_population()[0]["zone_id"] == "ZA"

    def test_older_year_is_ignored(
        self, seeded_repository, test_config, empty_aliases, alert_manager, write_data_file
    ):
        """Test a later run with older data keeps the newer year."""
        write_data_file("census_2020_population.csv", "Subzone,Total,year\nAlpha Park,1000,2020\n")
        self._run(seeded_repository, test_config, empty_aliases, alert_manager)

        write_data_file("census_2020_population.csv", "Subzone,Total,year\nAlpha Park,700,2015\n")
        result = self._run(seeded_repository, test_config, empty_aliases, alert_manager)

        assert result.counts["kept_newer_year"] == 1
        assert seeded_repository.population_totals() == [1000]

    def test_invalid_rows_do_not_fail(
        self, seeded_repository, test_config, empty_aliases, alert_manager, write_data_file
    ):
        """Test malformed rows are counted without changing the status."""
        write_data_file("census_2020_population.csv", ZONES_CSV + "Echo Ridge,unknown\n")

        result = self._run(seeded_repository, test_config, empty_aliases, alert_manager)

        assert result.status == "success"
        assert result.counts["invalid"] == 1

    def test_only_aggregates_fail(
        self, seeded_repository, test_config, empty_aliases, alert_manager, write_data_file
    ):
        """Test a file with no data rows fails."""
        write_data_file("census_2020_population.csv", "Subzone,Total\nTotal,100\n")

        result = self._run(seeded_repository, test_config, empty_aliases, alert_manager)

        assert result.status == "failed"

    def test_storage_failure(
        self, seeded_repository, test_config, empty_aliases, alert_manager, write_data_file, mocker
    ):
        """Test an exception in the batch write fails the run and is recorded."""
        write_data_file("census_2020_population.csv", ZONES_CSV)
        mocker.patch.object(
            seeded_repository, "apply_population_batch", side_effect=RuntimeError("database is locked")
        )

        result = self._run(seeded_repository, test_config, empty_aliases, alert_manager)

        assert result.status == "failed"
        assert result.error_message == "database is locked"
        snapshot = seeded_repository.get_snapshot(result.snapshot_id)
        assert snapshot["meta"]["error"]["type"] == "RuntimeError"


class TestPointPipelines:
    """Test cases for the point feature pipelines."""

    def test_hawker_centres(
        self,
        seeded_repository,
        test_config,
        empty_aliases,
        alert_manager,
        write_data_file,
        point_feature,
        feature_collection,
    ):
        """Test dedupe, zone assignment and upsert."""
        write_data_file(
            "nea_hawker_centres.geojson",
            feature_collection(
                point_feature(103.805, 1.305, NAME="Alpha Market", NUMBER_OF_COOKED_FOOD_STALLS="40"),
                point_feature(103.805, 1.305 + NEARBY, NAME="alpha market"),
                point_feature(103.815, 1.305, NAME="Bravo Market"),
                point_feature(103.95, 1.45, NAME="Far Market"),
            ),
        )
        pipeline = _pipeline(HawkerCentrePipeline, seeded_repository, test_config, empty_aliases, alert_manager)

        result = pipeline.run()

        assert result.status == "success"
        assert result.counts["duplicates_dropped"] == 1
        assert result.counts["assigned"] == 2
        assert result.counts["unassigned"] == 1
        assert result.counts["match_rate"] == pytest.approx(2 / 3)

        centres = {c["name"]: c for c in seeded_repository.list_hawker_centres()}
        assert centres["Alpha Market"]["zone_id"] == "ZA"
        assert centres["Alpha Market"]["capacity"] == 40
        assert centres["Far Market"]["zone_id"] is None

        snapshot = seeded_repository.get_snapshot(result.snapshot_id)
        assert snapshot["meta"]["samples"]["unassigned"] == ["Far Market"]

    def test_rerun_is_idempotent(
        self,
        seeded_repository,
        test_config,
        empty_aliases,
        alert_manager,
        write_data_file,
        point_feature,
        feature_collection,
    ):
        """Test unchanged input updates the same rows."""
        write_data_file(
            "nea_hawker_centres.geojson",
            feature_collection(point_feature(103.805, 1.305, NAME="Alpha Market")),
        )
        pipeline = _pipeline(HawkerCentrePipeline, seeded_repository, test_config, empty_aliases, alert_manager)
        pipeline.run()

        result = pipeline.run()

        assert result.counts["inserted"] == 0
        assert result.counts["updated"] == 1
        assert len(seeded_repository.list_hawker_centres()) == 1

    def test_mostly_unassigned_is_partial(
        self,
        seeded_repository,
        test_config,
        empty_aliases,
        alert_manager,
        write_data_file,
        point_feature,
        feature_collection,
    ):
        """Test a low assignment rate makes the run partial."""
        write_data_file(
            "nea_hawker_centres.geojson",
            feature_collection(
                point_feature(103.805, 1.305, NAME="Inside"),
                point_feature(103.95, 1.45, NAME="Outside One"),
                point_feature(103.96, 1.46, NAME="Outside Two"),
            ),
        )

        result = _pipeline(
            HawkerCentrePipeline, seeded_repository, test_config, empty_aliases, alert_manager
        ).run()

        assert result.status == "partial"

    def test_mrt_exits_keep_each_exit(
        self,
        seeded_repository,
        test_config,
        empty_aliases,
        alert_manager,
        write_data_file,
        point_feature,
        feature_collection,
    ):
        """Test exits of one station at the same spot are not merged."""
        write_data_file(
            "mrt_station_exits.geojson",
            feature_collection(
                point_feature(103.805, 1.305, STN_NAME="ALPHA", STN_NO="NS1/EW1", EXIT_CODE="A"),
                point_feature(103.805, 1.305 + NEARBY, STN_NAME="ALPHA", STN_NO="NS1/EW1", EXIT_CODE="B"),
                point_feature(103.805, 1.305, STN_NAME="ALPHA", STN_NO="NS1/EW1", EXIT_CODE="A"),
            ),
        )

        result = _pipeline(MrtExitPipeline, seeded_repository, test_config, empty_aliases, alert_manager).run()

        exits = seeded_repository.list_mrt_exits()
        assert result.counts["duplicates_dropped"] == 1
        assert sorted(e["exit_code"] for e in exits) == ["A", "B"]
        assert all(e["line_count"] == 2 for e in exits)

    def test_bus_stops_dedupe_by_code(
        self, seeded_repository, test_config, empty_aliases, alert_manager, write_data_file
    ):
        """Test stops sharing a description stay distinct while repeated codes merge."""
        write_data_file(
            "lta_bus_stops.json",
            {
                "value": [
                    {"BusStopCode": "10001", "Description": "Opp Blk 1", "Latitude": 1.305, "Longitude": 103.805},
                    {"BusStopCode": "10002", "Description": "Opp Blk 1", "Latitude": 1.305, "Longitude": 103.806},
                    {"BusStopCode": "10001", "Description": "Opp Blk 1", "Latitude": 1.305, "Longitude": 103.805},
                ]
            },
        )

        result = _pipeline(BusStopPipeline, seeded_repository, test_config, empty_aliases, alert_manager).run()

        assert result.status == "success"
        assert result.counts["duplicates_dropped"] == 1
        assert sorted(s["stop_code"] for s in seeded_repository.list_bus_stops()) == ["10001", "10002"]

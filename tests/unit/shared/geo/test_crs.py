"""
Unit tests for CRS detection and SVY21 conversion.
"""

import pytest

from hawker_pulse.shared.geo.crs import CRS, convert_svy21, detect_crs, to_svy21, to_wgs84

# About 1 m in degrees near the equator
ONE_METRE_DEG = 1e-5


class TestDetectCrs:
    """Test cases for detect_crs."""

    def test_wgs84(self):
        """Test Singapore lon/lat is WGS84."""
        assert detect_crs(103.8198, 1.3521) == CRS.WGS84

    def test_svy21(self):
        """Test Singapore easting/northing is SVY21."""
        assert detect_crs(28994.5, 29547.4) == CRS.SVY21

    @pytest.mark.parametrize(
        "x, y",
        [
            (0.0, 0.0),
            (-71.0589, 42.3601),
            (103.0, 1.35),  # bounds are exclusive
            (5000.0, 30000.0),
            (300000.0, 30000.0),
        ],
    )
    def test_unknown(self, x, y):
        """Test out-of-range pairs are UNKNOWN."""
        assert detect_crs(x, y) == CRS.UNKNOWN


class TestConversion:
    """Test cases for SVY21 <-> WGS84 conversion."""

    def test_origin(self):
        """Test the SVY21 false origin maps to the projection origin."""
        lon, lat = convert_svy21(28001.642, 38744.572)
        assert lon == pytest.approx(103.833333, abs=ONE_METRE_DEG)
        assert lat == pytest.approx(1.366666, abs=ONE_METRE_DEG)

    def test_round_trip(self):
        """Test WGS84 -> SVY21 -> WGS84 is stable to well under a metre."""
        easting, northing = to_svy21(103.8198, 1.3521)
        lon, lat = convert_svy21(easting, northing)
        assert lon == pytest.approx(103.8198, abs=ONE_METRE_DEG)
        assert lat == pytest.approx(1.3521, abs=ONE_METRE_DEG)

    def test_svy21_point_lands_in_singapore(self):
        """Test a typical SVY21 pair converts inside Singapore."""
        lon, lat = to_wgs84(28994.5, 29547.4)
        assert 103.6 < lon < 104.1
        assert 1.2 < lat < 1.5

    def test_wgs84_passes_through(self):
        """Test WGS84 pairs are returned unchanged."""
        assert to_wgs84(103.8198, 1.3521) == (103.8198, 1.3521)

    def test_unknown_passes_through(self):
        """Test UNKNOWN pairs are returned unchanged."""
        assert to_wgs84(1.0, 2.0) == (1.0, 2.0)

    def test_explicit_crs(self):
        """Test an explicit CRS skips detection."""
        assert to_wgs84(28994.5, 29547.4, CRS.WGS84) == (28994.5, 29547.4)

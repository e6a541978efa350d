"""
Unit tests for coordinate extraction, point IDs and distance kernels.
"""

import math

import numpy as np
import pytest

from hawker_pulse.shared.geo.coords import (
    DEFAULT_EXTRACTORS,
    FieldPairExtractor,
    extract_coordinates,
    to_float,
)
from hawker_pulse.shared.geo.distance import (
    gaussian_kernel,
    haversine_m,
    haversine_matrix,
    metres_to_degrees,
)
from hawker_pulse.shared.geo.ids import MAX_SLUG_LENGTH, slugify, stable_id


class TestToFloat:
    """Test cases for to_float."""

    @pytest.mark.parametrize(
        "value, expected",
        [(1, 1.0), ("1.5", 1.5), (" 1,234.5 ", 1234.5), (2.25, 2.25)],
    )
    def test_parses_numbers(self, value, expected):
        """Test numeric values and strings parse."""
        assert to_float(value) == expected

    @pytest.mark.parametrize("value", [None, "", "  ", "abc", float("nan"), float("inf"), True, [1]])
    def test_rejects_garbage(self, value):
        """Test blanks, NaN, booleans and garbage are None."""
        assert to_float(value) is None


class TestExtractCoordinates:
    """Test cases for extract_coordinates."""

    def test_geometry_point(self):
        """Test GeoJSON Point geometry is extracted first."""
        record = {
            "geometry": {"type": "Point", "coordinates": [103.85, 1.29, 0]},
            "Latitude": "9",
            "Longitude": "9",
        }

        coordinates, extractor = extract_coordinates(record)

        assert (coordinates.x, coordinates.y) == (103.85, 1.29)
        assert extractor == "geometry"

    def test_field_pair(self):
        """Test lon/lat fields from LTA-style records."""
        coordinates, extractor = extract_coordinates({"Longitude": 103.85, "Latitude": "1.29"})
        assert (coordinates.x, coordinates.y) == (103.85, 1.29)
        assert extractor == "Longitude/Latitude"

    def test_svy21_fields(self):
        """Test X/Y fields are returned raw for CRS detection."""
        coordinates, extractor = extract_coordinates({"X": "28994.5", "Y": "29547.4"})
        assert (coordinates.x, coordinates.y) == (28994.5, 29547.4)
        assert extractor == "X/Y"

    def test_skips_incomplete_pairs(self):
        """Test a pair with one blank field falls through to the next extractor."""
        coordinates, extractor = extract_coordinates({"Longitude": "", "Latitude": "1.3", "lng": 103.8, "lat": 1.3})
        assert extractor == "lng/lat"
        assert coordinates.x == 103.8

    def test_non_point_geometry_is_ignored(self):
        """Test polygon geometries are not point coordinates."""
        record = {"geometry": {"type": "Polygon", "coordinates": [[[0, 0]]]}}
        assert extract_coordinates(record) is None

    def test_none_when_missing(self):
        """Test records without coordinates."""
        assert extract_coordinates({"name": "nowhere"}) is None

    def test_custom_extractors(self):
        """Test an explicit strategy list replaces the defaults."""
        extractors = (FieldPairExtractor("E", "N"),)
        assert extract_coordinates({"Longitude": 103.8, "Latitude": 1.3}, extractors) is None
        assert extract_coordinates({"E": 1, "N": 2}, extractors)[1] == "E/N"

    def test_default_order_starts_with_geometry(self):
        """Test geometry is the first default strategy."""
        assert DEFAULT_EXTRACTORS[0].name == "geometry"


class TestStableId:
    """Test cases for point IDs."""

    def test_format(self):
        """Test the ID combines a slug with 6-decimal coordinates."""
        assert stable_id("Maxwell Food Centre", 103.8445, 1.2803) == "MAXWELL_FOOD_CENTRE:103.844500,1.280300"

    def test_deterministic(self):
        """Test identical input gives identical IDs."""
        assert stable_id("Bedok 85", 103.9, 1.33) == stable_id("Bedok 85", 103.9, 1.33)

    def test_slug_is_bounded(self):
        """Test long names are truncated."""
        assert len(slugify("x" * 200)) == MAX_SLUG_LENGTH

    def test_slug_fallback(self):
        """Test names without slug characters still produce a slug."""
        assert slugify("!!!") == "POINT"


class TestDistance:
    """Test cases for haversine distance and the Gaussian kernel."""

    def test_zero_distance(self):
        """Test identical points are 0 m apart."""
        assert haversine_m(103.85, 1.29, 103.85, 1.29) == 0.0

    def test_one_hundredth_degree_latitude(self):
        """Test 0.01 degrees of latitude is about 1112 m."""
        assert haversine_m(103.85, 1.29, 103.85, 1.30) == pytest.approx(1111.95, rel=1e-3)

    def test_matrix_matches_scalar(self):
        """Test the matrix form agrees with the scalar form."""
        matrix = haversine_matrix(
            np.array([103.80, 103.85]), np.array([1.30, 1.29]), np.array([103.90]), np.array([1.35])
        )
        assert matrix.shape == (2, 1)
        assert matrix[1, 0] == pytest.approx(haversine_m(103.85, 1.29, 103.90, 1.35))

    def test_gaussian_kernel(self):
        """Test kernel values at 0 and one bandwidth."""
        assert gaussian_kernel(0.0, 100.0) == 1.0
        assert gaussian_kernel(100.0, 100.0) == pytest.approx(math.exp(-0.5))

    def test_gaussian_kernel_array(self):
        """Test the kernel applies elementwise to arrays."""
        values = gaussian_kernel(np.array([0.0, 200.0]), 100.0)
        assert values[0] == 1.0
        assert values[1] == pytest.approx(math.exp(-2.0))

    def test_gaussian_kernel_rejects_bad_bandwidth(self):
        """Test non-positive bandwidths are rejected."""
        with pytest.raises(ValueError):
            gaussian_kernel(1.0, 0.0)

    def test_metres_to_degrees(self):
        """Test the degree radius covers at least the requested distance."""
        degrees = metres_to_degrees(100.0, 1.3)
        assert degrees * 110574.0 >= 100.0 - 1e-9

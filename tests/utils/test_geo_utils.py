"""
Unit tests for wastewatch/utils/geo_utils.py
"""

import math

import pytest

from wastewatch.utils.geo_utils import (
    EARTH_RADIUS_METERS,
    bounding_box,
    calculate_distance_meters,
)


class TestCalculateDistanceMeters:
    """Tests for Haversine distance calculation."""

    def test_same_point_returns_zero(self):
        assert calculate_distance_meters(12.9, 77.6, 12.9, 77.6) == 0.0

    def test_known_distance_bangalore_to_chennai(self):
        """Bangalore to Chennai is roughly 290 km in a straight line."""
        distance = calculate_distance_meters(12.9716, 77.5946, 13.0827, 80.2707)
        assert 285000 <= distance <= 295000

    def test_short_distance_100_meters(self):
        distance = calculate_distance_meters(0.0, 0.0, 0.0009, 0.0)
        assert 90 <= distance <= 110

    def test_symmetry(self):
        d1 = calculate_distance_meters(12.9, 77.6, 13.1, 80.2)
        d2 = calculate_distance_meters(13.1, 80.2, 12.9, 77.6)
        assert abs(d1 - d2) < 0.001

    def test_antipodal_points(self):
        distance = calculate_distance_meters(0.0, 0.0, 0.0, 180.0)
        assert distance == pytest.approx(math.pi * EARTH_RADIUS_METERS)


class TestBoundingBox:
    """Tests for the radius prefilter box."""

    def test_box_is_centered_on_point(self):
        min_lat, max_lat, min_lon, max_lon = bounding_box(12.9, 77.6, 1000)
        assert min_lat < 12.9 < max_lat
        assert min_lon < 77.6 < max_lon
        assert (max_lat - 12.9) == pytest.approx(12.9 - min_lat)

    def test_latitude_extent_matches_radius(self):
        min_lat, max_lat, _, _ = bounding_box(12.9, 77.6, 1000)
        assert calculate_distance_meters(12.9, 77.6, max_lat, 77.6) == pytest.approx(1000, rel=1e-6)

    @pytest.mark.parametrize("latitude", [0.0, 45.0, -60.0, 80.0])
    def test_every_point_on_circle_is_inside_box(self, latitude):
        """Points at exactly the radius in every direction lie in the box."""
        radius = 5000.0
        min_lat, max_lat, min_lon, max_lon = bounding_box(latitude, 10.0, radius)
        angular = radius / EARTH_RADIUS_METERS
        lat1 = math.radians(latitude)
        lon1 = math.radians(10.0)

        for bearing_deg in range(0, 360, 5):
            bearing = math.radians(bearing_deg)
            lat2 = math.asin(
                math.sin(lat1) * math.cos(angular)
                + math.cos(lat1) * math.sin(angular) * math.cos(bearing)
            )
            lon2 = lon1 + math.atan2(
                math.sin(bearing) * math.sin(angular) * math.cos(lat1),
                math.cos(angular) - math.sin(lat1) * math.sin(lat2),
            )
            point_lat, point_lon = math.degrees(lat2), math.degrees(lon2)
            assert min_lat - 1e-9 <= point_lat <= max_lat + 1e-9
            assert min_lon - 1e-9 <= point_lon <= max_lon + 1e-9

    def test_circle_reaching_pole_spans_all_longitudes(self):
        min_lat, max_lat, min_lon, max_lon = bounding_box(89.99, 0.0, 5000)
        assert max_lat == 90.0
        assert (min_lon, max_lon) == (-180.0, 180.0)

    def test_circle_crossing_antimeridian_spans_all_longitudes(self):
        _, _, min_lon, max_lon = bounding_box(0.0, 179.999, 5000)
        assert (min_lon, max_lon) == (-180.0, 180.0)

    def test_zero_radius_is_a_point(self):
        assert bounding_box(12.9, 77.6, 0) == (12.9, 12.9, 77.6, 77.6)

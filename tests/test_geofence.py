"""Tests for geofence evaluation."""

import pytest

from punchd.calculators.geofence import haversine_distance, is_within_geofence

from .conftest import JOB_LAT, JOB_LNG, north_of


class TestHaversine:
    def test_same_point_is_zero(self):
        assert haversine_distance(JOB_LAT, JOB_LNG, JOB_LAT, JOB_LNG) == 0

    def test_meridian_distance(self):
        assert haversine_distance(JOB_LAT, JOB_LNG, north_of(JOB_LAT, 150), JOB_LNG) == (
            pytest.approx(150, abs=0.01)
        )

    def test_symmetric(self):
        a = haversine_distance(40.0, -74.0, 41.0, -73.0)
        b = haversine_distance(41.0, -73.0, 40.0, -74.0)
        assert a == pytest.approx(b)


class TestIsWithinGeofence:
    def test_inside(self):
        result = is_within_geofence(JOB_LAT, JOB_LNG, 100, north_of(JOB_LAT, 50), JOB_LNG)

        assert result.is_within is True
        assert result.rounded_distance == 50

    def test_outside_reports_distance(self):
        result = is_within_geofence(JOB_LAT, JOB_LNG, 100, north_of(JOB_LAT, 150), JOB_LNG)

        assert result.is_within is False
        assert result.rounded_distance == 150

    def test_boundary_is_inclusive(self):
        point = north_of(JOB_LAT, 100)
        distance = haversine_distance(JOB_LAT, JOB_LNG, point, JOB_LNG)

        assert is_within_geofence(JOB_LAT, JOB_LNG, distance, point, JOB_LNG).is_within is True
        assert (
            is_within_geofence(JOB_LAT, JOB_LNG, distance - 1e-6, point, JOB_LNG).is_within
            is False
        )

    def test_zero_radius_only_admits_centre(self):
        assert is_within_geofence(JOB_LAT, JOB_LNG, 0, JOB_LAT, JOB_LNG).is_within is True
        assert is_within_geofence(JOB_LAT, JOB_LNG, 0, north_of(JOB_LAT, 0.5), JOB_LNG).is_within is False

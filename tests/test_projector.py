"""
Unit tests for the coordinate projector.

Tests cover:
- GeoFix -> local frame (to_local), including unknown altitude
- Pole clamp and antimeridian wrap
- Local frame -> GeoFix (to_geodetic)
- Haversine distance properties and reference values
- Vectorized variants against the scalar functions

Reference geometry: equirectangular plane, 111 320 m per degree latitude,
spherical Earth R = 6 371 km for great-circle distances.
"""

import math

import numpy as np
import pytest

from arloc_core.errors import InvalidCoordinate
from arloc_core.localization import (
    M_PER_DEG_LAT,
    distance,
    distance_array,
    meters_per_degree_lon,
    to_geodetic,
    to_local,
    to_local_array,
)
from arloc_core.proto import GeoFix, LocalOffset


def _fix(lat, lon, alt=None):
    return GeoFix(latitude=lat, longitude=lon, altitude=alt)


class TestToLocal:
    """Tests for to_local projection."""

    def test_origin_maps_to_zero(self, origin_fix: GeoFix):
        offset = to_local(origin_fix, origin_fix)

        assert offset == LocalOffset(0.0, 0.0, 0.0)

    def test_north_is_positive_z(self, origin_fix: GeoFix):
        target = _fix(origin_fix.latitude + 10.0 / M_PER_DEG_LAT, origin_fix.longitude, 16.0)

        offset = to_local(origin_fix, target)

        assert offset.z == pytest.approx(10.0)
        assert offset.x == pytest.approx(0.0, abs=1e-9)
        assert offset.y == pytest.approx(0.0)

    def test_east_is_positive_x(self, origin_fix: GeoFix):
        cos_lat = math.cos(math.radians(origin_fix.latitude))
        target = _fix(origin_fix.latitude, origin_fix.longitude + 10.0 / (M_PER_DEG_LAT * cos_lat), 16.0)

        offset = to_local(origin_fix, target)

        assert offset.x == pytest.approx(10.0)
        assert offset.z == pytest.approx(0.0, abs=1e-9)

    def test_altitude_difference_is_y(self, origin_fix: GeoFix):
        target = _fix(origin_fix.latitude, origin_fix.longitude, origin_fix.altitude + 5.0)

        assert to_local(origin_fix, target).y == pytest.approx(5.0)

    def test_unknown_altitude_gives_zero_height(self, origin_fix: GeoFix):
        target = _fix(origin_fix.latitude, origin_fix.longitude, None)

        assert to_local(origin_fix, target).y == 0.0
        assert to_local(target, origin_fix).y == 0.0

    def test_pole_origin_clamps_x(self):
        """At the pole cos(lat) is clamped to 0: x is 0, never NaN."""
        pole = _fix(90.0, 0.0)
        target = _fix(89.999, 45.0)

        offset = to_local(pole, target)

        assert offset.x == 0.0
        assert not math.isnan(offset.x)
        assert offset.z == pytest.approx(-0.001 * M_PER_DEG_LAT)

    def test_south_pole_origin_clamps_x(self):
        offset = to_local(_fix(-90.0, 10.0), _fix(-89.99, -170.0))

        assert offset.x == 0.0

    def test_antimeridian_wrap(self):
        """Crossing ±180° gives a short eastward step, not a 360° detour."""
        origin = _fix(0.0, 179.9999)
        target = _fix(0.0, -179.9999)

        offset = to_local(origin, target)

        assert offset.x == pytest.approx(0.0002 * M_PER_DEG_LAT, rel=1e-6)

    def test_meters_per_degree_lon_at_equator_and_pole(self):
        assert meters_per_degree_lon(0.0) == pytest.approx(M_PER_DEG_LAT)
        assert meters_per_degree_lon(90.0) == 0.0
        assert meters_per_degree_lon(60.0) == pytest.approx(M_PER_DEG_LAT / 2)


class TestToGeodetic:
    """Tests for the inverse projection."""

    def test_inverse_of_to_local(self, origin_fix: GeoFix, nearby_fix: GeoFix):
        offset = to_local(origin_fix, nearby_fix)

        back = to_geodetic(origin_fix, offset)

        assert back.latitude == pytest.approx(nearby_fix.latitude, abs=1e-9)
        assert back.longitude == pytest.approx(nearby_fix.longitude, abs=1e-9)
        assert back.altitude == pytest.approx(nearby_fix.altitude)

    def test_inherits_origin_metadata_by_default(self, origin_fix: GeoFix):
        back = to_geodetic(origin_fix, LocalOffset(1.0, 0.0, 1.0))

        assert back.accuracy == origin_fix.accuracy
        assert back.timestamp == origin_fix.timestamp

    def test_explicit_timestamp(self, origin_fix: GeoFix):
        back = to_geodetic(origin_fix, LocalOffset(0.0, 0.0, 0.0), accuracy=1.0, timestamp=42.0)

        assert back.accuracy == 1.0
        assert back.timestamp == 42.0

    def test_pole_keeps_origin_longitude(self):
        pole = _fix(90.0, 12.0)

        back = to_geodetic(pole, LocalOffset(500.0, 0.0, -1000.0))

        assert back.longitude == 12.0
        assert back.latitude < 90.0

    def test_unknown_origin_altitude_stays_unknown(self):
        back = to_geodetic(_fix(10.0, 10.0), LocalOffset(0.0, 3.0, 0.0))

        assert back.altitude is None

    def test_walking_past_pole_is_rejected(self):
        with pytest.raises(InvalidCoordinate):
            to_geodetic(_fix(90.0, 0.0), LocalOffset(0.0, 0.0, 10.0))

    def test_longitude_normalized_across_antimeridian(self):
        back = to_geodetic(_fix(0.0, 179.9999), LocalOffset(0.0002 * M_PER_DEG_LAT, 0.0, 0.0))

        assert back.longitude == pytest.approx(-179.9999, abs=1e-9)


class TestDistance:
    """Tests for haversine distance."""

    def test_distance_to_self_is_zero(self, origin_fix: GeoFix):
        assert distance(origin_fix, origin_fix) == pytest.approx(0.0, abs=1e-3)

    def test_symmetric(self, origin_fix: GeoFix, nearby_fix: GeoFix):
        assert distance(origin_fix, nearby_fix) == pytest.approx(distance(nearby_fix, origin_fix), abs=1e-3)

    @pytest.mark.parametrize("a,b", [
        ((0.0, 0.0), (45.0, 90.0)),
        ((-33.86, 151.21), (51.5, -0.12)),
        ((89.9, 0.0), (-89.9, 180.0)),
        ((0.0, 179.5), (0.0, -179.5)),
    ])
    def test_symmetric_far_points(self, a, b):
        fa, fb = _fix(*a), _fix(*b)

        assert distance(fa, fb) == pytest.approx(distance(fb, fa), abs=1e-3)

    def test_one_degree_longitude_at_equator(self):
        d = distance(_fix(0.0, 0.0), _fix(0.0, 1.0))

        assert d == pytest.approx(111320.0, rel=0.01)

    def test_one_degree_latitude(self):
        d = distance(_fix(0.0, 0.0), _fix(1.0, 0.0))

        assert d == pytest.approx(110574.0, rel=0.01)

    def test_antipodal_points(self):
        d = distance(_fix(0.0, 0.0), _fix(0.0, 180.0))

        assert d == pytest.approx(math.pi * 6371000.0, rel=1e-9)

    def test_altitude_ignored(self, origin_fix: GeoFix):
        raised = _fix(origin_fix.latitude, origin_fix.longitude, 500.0)

        assert distance(origin_fix, raised) == pytest.approx(0.0, abs=1e-3)

    def test_agrees_with_projection_at_short_range(self, origin_fix: GeoFix, nearby_fix: GeoFix):
        """Within ~50 m the flat projection and great circle agree to decimeters."""
        planar = to_local(origin_fix, nearby_fix).horizontal_norm()

        assert distance(origin_fix, nearby_fix) == pytest.approx(planar, abs=0.5)


class TestVectorized:
    """Tests for numpy bulk helpers."""

    def test_to_local_array_matches_scalar(self, origin_fix: GeoFix):
        lats = [37.7750, 37.7760, 37.7740]
        lons = [-122.4190, -122.4200, -122.4180]
        alts = [16.0, 20.0, 10.0]

        result = to_local_array(origin_fix, lats, lons, alts)

        assert result.shape == (3, 3)
        for row, lat, lon, alt in zip(result, lats, lons, alts):
            expected = to_local(origin_fix, _fix(lat, lon, alt)).as_tuple()
            np.testing.assert_allclose(row, expected, atol=1e-9)

    def test_to_local_array_without_altitudes(self, origin_fix: GeoFix):
        result = to_local_array(origin_fix, [37.78], [-122.42])

        assert result[0, 1] == 0.0

    def test_distance_array_matches_scalar(self, origin_fix: GeoFix):
        lats = np.array([0.0, 37.78, -45.0])
        lons = np.array([0.0, -122.41, 170.0])

        result = distance_array(origin_fix, lats, lons)

        expected = [distance(origin_fix, _fix(lat, lon)) for lat, lon in zip(lats, lons)]
        np.testing.assert_allclose(result, expected, rtol=1e-9)

    def test_out_of_range_array_rejected(self, origin_fix: GeoFix):
        with pytest.raises(InvalidCoordinate):
            to_local_array(origin_fix, [95.0], [0.0])

    def test_nan_array_rejected(self, origin_fix: GeoFix):
        with pytest.raises(InvalidCoordinate):
            distance_array(origin_fix, [np.nan], [0.0])

    def test_shape_mismatch_rejected(self, origin_fix: GeoFix):
        with pytest.raises(ValueError, match="shape"):
            to_local_array(origin_fix, [1.0, 2.0], [1.0])

    def test_altitude_shape_mismatch_rejected(self, origin_fix: GeoFix):
        with pytest.raises(ValueError, match="alts shape"):
            to_local_array(origin_fix, [37.78, 37.79], [-122.42, -122.41], [10.0])

    def test_non_finite_altitude_rejected(self, origin_fix: GeoFix):
        with pytest.raises(InvalidCoordinate):
            to_local_array(origin_fix, [37.78], [-122.42], [np.inf])

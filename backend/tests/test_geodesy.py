import math

import pytest

from sightline.geodesy import (
  EARTH_RADIUS_M,
  GeoPoint,
  bearing,
  destination_point,
  haversine_distance,
  normalize_longitude,
)


def test_normalize_longitude_range() -> None:
  assert normalize_longitude(180.0) == -180.0
  assert normalize_longitude(-180.0) == -180.0
  assert normalize_longitude(190.0) == pytest.approx(-170.0)
  assert normalize_longitude(-190.0) == pytest.approx(170.0)
  assert normalize_longitude(540.0) == -180.0
  assert normalize_longitude(12.5) == pytest.approx(12.5)


def test_geopoint_normalizes_and_validates() -> None:
  point = GeoPoint(lon=200.0, lat=10.0)
  assert point.lon == pytest.approx(-160.0)

  with pytest.raises(ValueError):
    GeoPoint(lon=0.0, lat=90.5)


def test_destination_zero_distance_is_origin() -> None:
  origin = GeoPoint(lon=-122.3321, lat=47.6062)
  assert destination_point(origin, 37.0, 0.0) == origin


@pytest.mark.parametrize("direction", [0.0, 90.0, 180.0, 270.0])
def test_destination_cardinal_bearings_are_finite(direction: float) -> None:
  origin = GeoPoint(lon=10.0, lat=45.0)
  point = destination_point(origin, direction, 1000.0)
  assert not math.isnan(point.lat)
  assert not math.isnan(point.lon)
  assert haversine_distance(origin, point) == pytest.approx(1000.0, rel=1e-9)


def test_quarter_circumference_east_from_null_island() -> None:
  quarter = math.pi * EARTH_RADIUS_M / 2
  point = destination_point(GeoPoint(lon=0.0, lat=0.0), 90.0, quarter)

  assert quarter == pytest.approx(10_007_543, abs=1)
  assert point.lon == pytest.approx(90.0, abs=1e-9)
  assert point.lat == pytest.approx(0.0, abs=1e-9)


def test_destination_wraps_across_antimeridian() -> None:
  origin = GeoPoint(lon=179.9, lat=0.0)
  point = destination_point(origin, 90.0, 30_000.0)

  assert -180.0 <= point.lon < -179.0
  assert haversine_distance(origin, point) == pytest.approx(30_000.0, rel=1e-9)


def test_bearing_cardinals_and_range() -> None:
  origin = GeoPoint(lon=0.0, lat=0.0)

  assert bearing(origin, GeoPoint(lon=0.0, lat=1.0)) == pytest.approx(0.0)
  assert bearing(origin, GeoPoint(lon=1.0, lat=0.0)) == pytest.approx(90.0)
  assert bearing(origin, GeoPoint(lon=0.0, lat=-1.0)) == pytest.approx(180.0)
  assert bearing(origin, GeoPoint(lon=-1.0, lat=0.0)) == pytest.approx(270.0)

  for direction in (0.0, 45.0, 123.4, 359.9):
    result = bearing(origin, destination_point(origin, direction, 5000.0))
    assert 0.0 <= result < 360.0


def test_destination_then_bearing_recovers_direction() -> None:
  origin = GeoPoint(lon=8.5, lat=47.3)
  for direction in (10.0, 100.0, 200.0, 300.0):
    point = destination_point(origin, direction, 20_000.0)
    assert bearing(origin, point) == pytest.approx(direction, abs=1e-6)


def test_haversine_is_symmetric() -> None:
  a = GeoPoint(lon=-122.3321, lat=47.6062)
  b = GeoPoint(lon=-122.3121, lat=47.6162)
  assert haversine_distance(a, b) == pytest.approx(haversine_distance(b, a))
  assert haversine_distance(a, a) == 0.0


def test_distances_use_the_mean_radius_sphere() -> None:
  # One degree of arc along a meridian, and along the equator, on the sphere.
  one_degree = math.pi * EARTH_RADIUS_M / 180.0
  origin = GeoPoint(lon=0.0, lat=0.0)

  assert haversine_distance(origin, GeoPoint(lon=0.0, lat=1.0)) == pytest.approx(one_degree, rel=1e-12)
  assert haversine_distance(origin, GeoPoint(lon=1.0, lat=0.0)) == pytest.approx(one_degree, rel=1e-12)


def test_closed_form_spherical_agreement() -> None:
  origin = GeoPoint(lon=-111.9, lat=40.7)
  lat1 = math.radians(origin.lat)

  for direction, distance in ((15.0, 1_000.0), (137.0, 42_000.0), (301.0, 99_000.0)):
    delta = distance / EARTH_RADIUS_M
    theta = math.radians(direction)
    lat2 = math.asin(math.sin(lat1) * math.cos(delta) + math.cos(lat1) * math.sin(delta) * math.cos(theta))
    lon2 = math.radians(origin.lon) + math.atan2(
      math.sin(theta) * math.sin(delta) * math.cos(lat1),
      math.cos(delta) - math.sin(lat1) * math.sin(lat2),
    )

    point = destination_point(origin, direction, distance)
    assert point.lat == pytest.approx(math.degrees(lat2), abs=1e-7)
    assert point.lon == pytest.approx(math.degrees(lon2), abs=1e-7)
    assert bearing(origin, point) == pytest.approx(direction, abs=1e-6)


def test_bearing_to_self_is_north() -> None:
  point = GeoPoint(lon=8.5, lat=47.3)
  assert bearing(point, point) == 0.0

import math

import pytest

from sightline.elevation import ConstantProvider, FunctionProvider
from sightline.geodesy import GeoPoint, destination_point
from sightline.readout import format_angle, format_distance, inspect_point
from sightline.sweep import Observer


def test_format_distance() -> None:
  assert format_distance(0.0) == "0m"
  assert format_distance(523.4) == "523m"
  assert format_distance(1000.0) == "1.0km"
  assert format_distance(12_345.0) == "12.3km"


def test_format_angle() -> None:
  assert format_angle(math.radians(3.44)) == "3.4°"
  assert format_angle(-math.radians(0.5)) == "-0.5°"


def test_inspect_flat_ground_due_east(origin: GeoPoint) -> None:
  observer = Observer(point=origin, height_m=2.0)
  target = destination_point(origin, 90.0, 1500.0)

  readout = inspect_point(ConstantProvider(0.0), observer, target)

  assert readout.distance_m == pytest.approx(1500.0)
  assert readout.bearing_deg == pytest.approx(90.0)
  assert readout.elevation_angle_rad < 0
  assert readout.labels() == {
    "distance": "1.5km",
    "bearing": "90.0°",
    "elevationAngle": format_angle(readout.elevation_angle_rad),
  }


def test_inspect_summit_is_above_horizon(origin: GeoPoint) -> None:
  target = destination_point(origin, 0.0, 1000.0)
  provider = FunctionProvider(lambda point: 100.0 if point == target else 0.0)

  readout = inspect_point(provider, Observer(point=origin, height_m=2.0), target)

  assert readout.target_elevation_m == 100.0
  expected = math.atan2(100.0 - 1000.0**2 / (2 * 6_371_000) - 2.0, 1000.0)
  assert readout.elevation_angle_rad == pytest.approx(expected, rel=1e-6)

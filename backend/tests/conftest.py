from __future__ import annotations

import pytest

from sightline.elevation import FunctionProvider
from sightline.geodesy import GeoPoint, bearing, haversine_distance

ORIGIN = GeoPoint(lon=0.0, lat=0.0)


def wall_provider(
  origin: GeoPoint = ORIGIN,
  min_bearing: float = 80.0,
  max_bearing: float = 100.0,
  near_m: float = 495.0,
  far_m: float = 535.0,
  height_m: float = 50.0,
) -> FunctionProvider:
  """Flat ground at 0 m with a wall raised across a bearing range."""

  def elevation(point: GeoPoint) -> float:
    distance = haversine_distance(origin, point)
    if not near_m <= distance <= far_m:
      return 0.0
    direction = bearing(origin, point)
    if min_bearing - 1e-6 <= direction <= max_bearing + 1e-6:
      return height_m
    return 0.0

  return FunctionProvider(elevation, name="wall")


def ring_provider(origin: GeoPoint = ORIGIN, near_m: float = 850.0, far_m: float = 1150.0, height_m: float = 100.0) -> FunctionProvider:
  """A circular ridge around the origin: tall between near_m and far_m, 0 elsewhere."""

  def elevation(point: GeoPoint) -> float:
    distance = haversine_distance(origin, point)
    return height_m if near_m <= distance <= far_m else 0.0

  return FunctionProvider(elevation, name="ring")


@pytest.fixture
def origin() -> GeoPoint:
  return ORIGIN


@pytest.fixture
def wall() -> FunctionProvider:
  return wall_provider()


@pytest.fixture
def ring() -> FunctionProvider:
  return ring_provider()

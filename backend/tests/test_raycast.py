import math

import pytest

from sightline.elevation import ConstantProvider, FunctionProvider
from sightline.geodesy import GeoPoint, haversine_distance
from sightline.raycast import cast_ray, trace_ray


def _running_max(angles: list[float]) -> list[float]:
  result: list[float] = []
  current = -math.inf
  for angle in angles:
    current = max(current, angle)
    result.append(current)
  return result


def test_flat_terrain_within_horizon_has_no_segments(origin: GeoPoint) -> None:
  provider = ConstantProvider(0.0)
  for direction in (0.0, 45.0, 90.0, 222.5, 359.0):
    assert cast_ray(provider, origin, direction, 2000.0, 2.0, 200) == []


def test_flat_terrain_past_geometric_horizon_is_blocked(origin: GeoPoint) -> None:
  # Horizon for a 2 m eye is sqrt(2 * R * h) ~ 5 km.
  result = trace_ray(ConstantProvider(0.0), origin, 90.0, 20_000.0, 2.0, 200)

  assert len(result.segments) == 1
  segment = result.segments[0]
  assert result.samples[segment.start_index].distance_m >= 4500.0
  assert segment.end_index == 200


def test_unloaded_provider_reports_no_obstruction(origin: GeoPoint) -> None:
  result = trace_ray(ConstantProvider(None), origin, 90.0, 20_000.0, 2.0, 200)

  assert result.segments == []
  assert result.no_data_samples == 202
  assert result.error is None


def test_peak_visible_valley_behind_blocked(origin: GeoPoint, ring: FunctionProvider) -> None:
  result = trace_ray(ring, origin, 45.0, 2000.0, 2.0, 20)

  by_index = {sample.index: sample for sample in result.samples}
  assert [by_index[i].elevation_m for i in (9, 10, 11)] == [100.0, 100.0, 100.0]
  # The near face of the ridge is visible; everything further out sits below it.
  assert not by_index[9].blocked
  assert all(by_index[i].blocked for i in range(10, 21))

  assert len(result.segments) == 1
  segment = result.segments[0]
  assert segment.start_index == 9
  assert segment.end_index == 20
  assert segment.start == by_index[9].point
  assert segment.end == by_index[20].point


def test_horizon_is_monotonic_and_blocked_samples_sit_below_it(origin: GeoPoint, ring: FunctionProvider) -> None:
  result = trace_ray(ring, origin, 200.0, 3000.0, 1.5, 60)

  horizon = -math.inf
  visible_angles: list[float] = []
  for sample in result.samples:
    if sample.blocked:
      assert sample.angle_rad < horizon
    else:
      assert sample.angle_rad >= horizon
      horizon = sample.angle_rad
      visible_angles.append(sample.angle_rad)

  assert visible_angles == _running_max(visible_angles)


def test_segments_ordered_and_disjoint(origin: GeoPoint) -> None:
  def rugged(point: GeoPoint) -> float:
    distance = haversine_distance(origin, point)
    return 40.0 * math.sin(distance / 173.0) + 25.0 * math.cos(distance / 61.0) + distance * 0.01

  provider = FunctionProvider(rugged)
  sample_count = 400
  result = trace_ray(provider, origin, 10.0, 10_000.0, 2.0, sample_count)

  assert len(result.segments) > 1
  for segment in result.segments:
    assert 0 <= segment.start_index < segment.end_index <= sample_count
    assert segment.blocked
  for previous, current in zip(result.segments, result.segments[1:]):
    assert previous.end_index < current.start_index

  covered = {i for s in result.segments for i in range(s.start_index, s.end_index + 1)}
  assert covered <= set(range(sample_count + 1))


def test_zero_sample_count_yields_origin_only(origin: GeoPoint, ring: FunctionProvider) -> None:
  result = trace_ray(ring, origin, 0.0, 2000.0, 2.0, 0)

  assert len(result.samples) == 1
  assert result.samples[0].point == origin
  assert result.segments == []


def test_equal_angles_count_as_visible(origin: GeoPoint) -> None:
  # Every sample sits on the origin, so every angle is identical.
  result = trace_ray(ConstantProvider(10.0), origin, 0.0, 0.0, 2.0, 5)

  assert len({sample.angle_rad for sample in result.samples}) == 1
  assert not any(sample.blocked for sample in result.samples)
  assert result.segments == []


def test_provider_failure_aborts_only_the_ray(origin: GeoPoint) -> None:
  def broken(point: GeoPoint) -> float:
    if haversine_distance(origin, point) > 700.0:
      raise RuntimeError("tile decode exploded")
    return 0.0 if haversine_distance(origin, point) < 300.0 else 80.0

  result = trace_ray(FunctionProvider(broken), origin, 90.0, 2000.0, 2.0, 20)

  assert result.segments == []
  assert result.samples == []
  assert result.error == "tile decode exploded"
  assert cast_ray(FunctionProvider(broken), origin, 90.0, 2000.0, 2.0, 20) == []


def test_rejects_negative_sample_count(origin: GeoPoint) -> None:
  with pytest.raises(ValueError):
    trace_ray(ConstantProvider(0.0), origin, 0.0, 1000.0, 2.0, -1)

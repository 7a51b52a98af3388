from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from sightline.curvature import curvature_drop
from sightline.elevation import ElevationProvider
from sightline.geodesy import GeoPoint, destination_point

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Sample:
  index: int
  distance_m: float
  point: GeoPoint
  elevation_m: float
  adjusted_elevation_m: float
  angle_rad: float
  blocked: bool


@dataclass(frozen=True)
class Segment:
  """A contiguous blocked span of one ray, from start to end (further out)."""

  start: GeoPoint
  end: GeoPoint
  bearing: float
  start_index: int
  end_index: int
  blocked: bool = True


@dataclass(frozen=True)
class RayResult:
  bearing: float
  segments: list[Segment] = field(default_factory=list)
  samples: list[Sample] = field(default_factory=list)
  no_data_samples: int = 0
  error: str | None = None


def elevation_angle(observer_elevation_m: float, target_elevation_m: float, distance_m: float) -> float:
  """Angle above horizontal (radians) from the observer to a target."""

  return math.atan2(target_elevation_m - observer_elevation_m, distance_m)


def trace_ray(
  provider: ElevationProvider,
  origin: GeoPoint,
  bearing: float,
  max_distance_m: float,
  observer_height_m: float,
  sample_count: int,
  no_data_elevation: float = 0.0,
) -> RayResult:
  """
  March one ray outwards and collect the spans hidden behind nearer terrain.

  sample_count + 1 samples are taken at distances max_distance_m * i / sample_count.
  A sample is blocked when its elevation angle is strictly below the highest
  angle seen so far; visible samples raise that horizon. Blocked runs become
  Segments starting at the last visible sample before the run.

  Any provider fault aborts the ray: the result carries no segments and the
  error message.
  """

  if sample_count < 0:
    raise ValueError("sample_count must be non-negative.")
  if max_distance_m < 0:
    raise ValueError("max_distance_m must be non-negative.")

  try:
    return _march(provider, origin, bearing, max_distance_m, observer_height_m, sample_count, no_data_elevation)
  except Exception as exc:
    logger.exception("Ray at bearing %.3f from %s failed", bearing, origin)
    return RayResult(bearing=bearing, error=str(exc))


def cast_ray(
  provider: ElevationProvider,
  origin: GeoPoint,
  bearing: float,
  max_distance_m: float,
  observer_height_m: float,
  sample_count: int,
  no_data_elevation: float = 0.0,
) -> list[Segment]:
  return trace_ray(
    provider,
    origin,
    bearing,
    max_distance_m,
    observer_height_m,
    sample_count,
    no_data_elevation,
  ).segments


def _march(
  provider: ElevationProvider,
  origin: GeoPoint,
  bearing: float,
  max_distance_m: float,
  observer_height_m: float,
  sample_count: int,
  no_data_elevation: float,
) -> RayResult:
  no_data = 0

  origin_elevation = provider.elevation_at(origin)
  if origin_elevation is None:
    origin_elevation = no_data_elevation
    no_data += 1
  observer_elevation = origin_elevation + observer_height_m

  samples: list[Sample] = []
  segments: list[Segment] = []
  open_start: tuple[GeoPoint, int] | None = None
  open_end: tuple[GeoPoint, int] | None = None
  max_angle = -math.inf

  for i in range(sample_count + 1):
    if sample_count == 0:
      distance = 0.0
    else:
      distance = max_distance_m * i / sample_count

    point = destination_point(origin, bearing, distance)
    elevation = provider.elevation_at(point)
    if elevation is None:
      elevation = no_data_elevation
      no_data += 1
    adjusted = elevation - curvature_drop(distance)
    angle = elevation_angle(observer_elevation, adjusted, distance)

    blocked = angle < max_angle
    if blocked:
      if open_start is None:
        previous = samples[-1].point if samples else origin
        open_start = (previous, max(i - 1, 0))
      open_end = (point, i)
    else:
      if open_start is not None and open_end is not None:
        segments.append(_segment(open_start, open_end, bearing))
        open_start = None
        open_end = None
      max_angle = angle

    samples.append(
      Sample(
        index=i,
        distance_m=distance,
        point=point,
        elevation_m=elevation,
        adjusted_elevation_m=adjusted,
        angle_rad=angle,
        blocked=blocked,
      )
    )

  if open_start is not None and open_end is not None:
    segments.append(_segment(open_start, open_end, bearing))

  # Origin plus every sample without terrain: nothing is known to obstruct.
  if no_data == len(samples) + 1:
    segments = []

  return RayResult(bearing=bearing, segments=segments, samples=samples, no_data_samples=no_data)


def _segment(start: tuple[GeoPoint, int], end: tuple[GeoPoint, int], bearing: float) -> Segment:
  return Segment(
    start=start[0],
    end=end[0],
    bearing=bearing,
    start_index=start[1],
    end_index=end[1],
  )

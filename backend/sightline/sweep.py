from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field

from sightline.elevation import ElevationProvider
from sightline.geodesy import GeoPoint
from sightline.raycast import RayResult, Segment, trace_ray

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Observer:
  point: GeoPoint
  height_m: float = 1.8

  def __post_init__(self) -> None:
    if self.height_m < 0:
      raise ValueError("Observer height must be non-negative.")


@dataclass
class VisibilitySet:
  """Blocked segments accumulated over the rays of one sweep, in cast order."""

  segments: list[Segment] = field(default_factory=list)
  bearings: list[float] = field(default_factory=list)
  failed_rays: int = 0
  no_data_samples: int = 0

  def add(self, result: RayResult) -> None:
    self.bearings.append(result.bearing)
    self.segments.extend(result.segments)
    self.no_data_samples += result.no_data_samples
    if result.error is not None:
      self.failed_rays += 1

  def __len__(self) -> int:
    return len(self.segments)

  def __iter__(self):
    return iter(self.segments)


UpdateCallback = Callable[[VisibilitySet], None]


def sweep_bearings(degree_step: float) -> list[float]:
  if degree_step <= 0:
    raise ValueError("degree_step must be positive.")
  count = int(math.ceil(360.0 / degree_step))
  bearings = [i * degree_step for i in range(count)]
  return [value for value in bearings if value < 360.0]


def full_sweep(
  provider: ElevationProvider,
  observer: Observer | None,
  max_distance_m: float,
  degree_step: float,
  sample_count: int,
  no_data_elevation: float = 0.0,
  on_update: UpdateCallback | None = None,
) -> VisibilitySet:
  """
  Cast evenly spaced rays all the way round the observer.

  Segments are ordered by bearing, then by distance along each ray. Without an
  observer the result is empty. on_update, when given, receives the finished
  set exactly once.
  """

  bearings = sweep_bearings(degree_step)
  visibility = VisibilitySet()
  if observer is None:
    if on_update is not None:
      on_update(visibility)
    return visibility

  for value in bearings:
    result = trace_ray(
      provider,
      observer.point,
      value,
      max_distance_m,
      observer.height_m,
      sample_count,
      no_data_elevation,
    )
    visibility.add(result)

  logger.debug(
    "Full sweep from %s: %d rays, %d segments, %d failed",
    observer.point,
    len(visibility.bearings),
    len(visibility.segments),
    visibility.failed_rays,
  )
  if on_update is not None:
    on_update(visibility)
  return visibility

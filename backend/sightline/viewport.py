from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from sightline.config import MAX_LINE_LENGTH_M
from sightline.geodesy import GeoPoint, haversine_distance


@dataclass(frozen=True)
class Viewport:
  north: float
  south: float
  east: float
  west: float

  def __post_init__(self) -> None:
    if self.south > self.north:
      raise ValueError("Viewport south edge must not be above the north edge.")

  def corners(self) -> list[GeoPoint]:
    """NE, NW, SE, SW."""

    return [
      GeoPoint(lon=self.east, lat=self.north),
      GeoPoint(lon=self.west, lat=self.north),
      GeoPoint(lon=self.east, lat=self.south),
      GeoPoint(lon=self.west, lat=self.south),
    ]


def max_ray_distance(
  vantage: GeoPoint,
  corners: Iterable[GeoPoint],
  ceiling_m: float = MAX_LINE_LENGTH_M,
) -> float:
  """Longest vantage-to-corner distance, capped at ceiling_m."""

  distances = [haversine_distance(vantage, corner) for corner in corners]
  if not distances:
    return ceiling_m
  return min(max(distances), ceiling_m)

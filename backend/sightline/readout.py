from __future__ import annotations

import math
from dataclasses import dataclass

from sightline.curvature import curvature_drop
from sightline.elevation import ElevationProvider
from sightline.geodesy import GeoPoint, bearing, haversine_distance
from sightline.raycast import elevation_angle
from sightline.sweep import Observer


@dataclass(frozen=True)
class Inspection:
  distance_m: float
  bearing_deg: float
  elevation_angle_rad: float
  target_elevation_m: float | None

  def labels(self) -> dict[str, str]:
    return {
      "distance": format_distance(self.distance_m),
      "bearing": f"{self.bearing_deg:.1f}°",
      "elevationAngle": format_angle(self.elevation_angle_rad),
    }


def inspect_point(
  provider: ElevationProvider,
  observer: Observer,
  target: GeoPoint,
  no_data_elevation: float = 0.0,
) -> Inspection:
  """Distance, bearing and curvature-corrected elevation angle from the observer to target."""

  distance = haversine_distance(observer.point, target)
  origin_elevation = provider.elevation_at(observer.point)
  target_elevation = provider.elevation_at(target)

  observer_elevation = (no_data_elevation if origin_elevation is None else origin_elevation) + observer.height_m
  adjusted = (no_data_elevation if target_elevation is None else target_elevation) - curvature_drop(distance)

  return Inspection(
    distance_m=distance,
    bearing_deg=bearing(observer.point, target),
    elevation_angle_rad=elevation_angle(observer_elevation, adjusted, distance),
    target_elevation_m=target_elevation,
  )


def format_distance(meters: float) -> str:
  if meters < 1000:
    return f"{round(meters)}m"
  return f"{meters / 1000:.1f}km"


def format_angle(radians: float) -> str:
  return f"{math.degrees(radians):.1f}°"

from __future__ import annotations

from dataclasses import dataclass

from pyproj import Geod

EARTH_RADIUS_M = 6_371_000.0

# Mean-radius sphere; curvature and ray spacing assume the same radius.
_geod = Geod(a=EARTH_RADIUS_M, b=EARTH_RADIUS_M)


def normalize_longitude(lon: float) -> float:
  """Wrap a longitude in degrees into [-180, 180)."""

  if -180.0 <= lon < 180.0:
    return lon
  wrapped = (lon + 540.0) % 360.0 - 180.0
  # Float modulo can land exactly on 180 for inputs a hair below -180.
  if wrapped >= 180.0:
    wrapped -= 360.0
  return wrapped


@dataclass(frozen=True)
class GeoPoint:
  lon: float
  lat: float

  def __post_init__(self) -> None:
    if not -90.0 <= self.lat <= 90.0:
      raise ValueError("Latitude must be between -90 and 90.")
    object.__setattr__(self, "lon", normalize_longitude(float(self.lon)))
    object.__setattr__(self, "lat", float(self.lat))

  def as_lonlat(self) -> list[float]:
    return [self.lon, self.lat]


def destination_point(origin: GeoPoint, bearing_deg: float, distance_m: float) -> GeoPoint:
  """
  Solve the direct geodesic problem on a sphere.

  Returns the point reached by travelling distance_m metres from origin along
  the great circle leaving at bearing_deg (clockwise from north). Poles are not
  special-cased.
  """

  if distance_m == 0:
    return origin

  lon, lat, _ = _geod.fwd(origin.lon, origin.lat, bearing_deg, distance_m)
  return GeoPoint(lon=float(lon), lat=max(-90.0, min(90.0, float(lat))))


def haversine_distance(a: GeoPoint, b: GeoPoint) -> float:
  """Great-circle distance in metres."""

  if a == b:
    return 0.0
  _, _, distance = _geod.inv(a.lon, a.lat, b.lon, b.lat)
  return float(abs(distance))


def bearing(a: GeoPoint, b: GeoPoint) -> float:
  """Initial great-circle bearing from a to b in degrees, [0, 360)."""

  if a == b:
    return 0.0
  forward, _, _ = _geod.inv(a.lon, a.lat, b.lon, b.lat)
  result = float(forward) % 360.0
  if result >= 360.0:
    result = 0.0
  return result

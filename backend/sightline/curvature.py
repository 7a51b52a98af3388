from __future__ import annotations

from sightline.geodesy import EARTH_RADIUS_M


def curvature_drop(distance_m: float) -> float:
  """
  Drop of the Earth's surface below the observer's tangent plane.

  Small-angle approximation d^2 / 2R; good to well under a metre of error out
  to the 100 km ray ceiling.
  """

  return (distance_m * distance_m) / (2.0 * EARTH_RADIUS_M)

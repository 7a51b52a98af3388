from __future__ import annotations

from collections.abc import Callable

from sightline.elevation.providers.base import ElevationProvider
from sightline.geodesy import GeoPoint


class ConstantProvider(ElevationProvider):
  """Flat terrain. elevation=None models a provider whose data is not loaded."""

  def __init__(self, elevation: float | None = 0.0) -> None:
    self.elevation = elevation

  def elevation_at(self, point: GeoPoint) -> float | None:
    return self.elevation

  def version(self) -> str:
    return f"constant:{self.elevation}"


class FunctionProvider(ElevationProvider):
  def __init__(self, fn: Callable[[GeoPoint], float | None], name: str = "function") -> None:
    self.fn = fn
    self.name = name

  def elevation_at(self, point: GeoPoint) -> float | None:
    return self.fn(point)

  def version(self) -> str:
    return self.name

from __future__ import annotations

from abc import ABC, abstractmethod

from sightline.geodesy import GeoPoint


class ElevationProvider(ABC):
  """
  Terrain elevation source.

  elevation_at returns metres, or None when the point has no data (tiles not
  loaded yet, outside coverage, NaN cell). Implementations must not raise for
  missing data.
  """

  @abstractmethod
  def elevation_at(self, point: GeoPoint) -> float | None:
    raise NotImplementedError

  def version(self) -> str:
    return self.__class__.__name__

from __future__ import annotations

import math

import numpy as np
from affine import Affine

from sightline.elevation.providers.base import ElevationProvider
from sightline.elevation.sampling import bilinear_sample
from sightline.geodesy import GeoPoint


class RasterProvider(ElevationProvider):
  """
  In-memory elevation grid in geographic coordinates.

  transform maps (col, row) grid node indices to (lon, lat). Values are
  node-registered: node (0, 0) sits exactly at transform * (0, 0).
  """

  def __init__(self, elevation: np.ndarray, transform: Affine, name: str = "raster") -> None:
    if elevation.ndim != 2:
      raise ValueError("elevation must be a 2D array.")
    self.elevation = np.asarray(elevation, dtype=np.float64)
    self.transform = transform
    self.name = name
    self._inverse = ~transform

  def elevation_at(self, point: GeoPoint) -> float | None:
    col, row = self._inverse @ (point.lon, point.lat)
    value = bilinear_sample(self.elevation, row, col)
    if math.isnan(value):
      return None
    return value

  def version(self) -> str:
    rows, cols = self.elevation.shape
    return f"{self.name}:{rows}x{cols}"

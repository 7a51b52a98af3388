from __future__ import annotations

import logging
import math
import time
from collections import OrderedDict
from pathlib import Path
from threading import Lock

import numpy as np
import requests
from affine import Affine
from PIL import Image

from sightline.elevation.providers.base import ElevationProvider
from sightline.elevation.sampling import bilinear_sample
from sightline.geodesy import GeoPoint

logger = logging.getLogger(__name__)

TILE_SIZE = 256
EARTH_RADIUS_M = 6378137.0
ORIGIN_SHIFT = 2 * math.pi * EARTH_RADIUS_M / 2.0
INITIAL_RESOLUTION = 2 * math.pi * EARTH_RADIUS_M / TILE_SIZE
MAX_LAT = 85.05112878


def decode_terrarium(rgb: np.ndarray) -> np.ndarray:
  """Decode an (H, W, 3) Terrarium RGB array into metres."""

  data = rgb.astype(np.float32)
  r = data[:, :, 0]
  g = data[:, :, 1]
  b = data[:, :, 2]
  elevation = (r * 256.0 + g + b / 256.0) - 32768.0
  return elevation.astype(np.float32)


class TerrariumProvider(ElevationProvider):
  """
  Point elevations from Terrarium PNG tiles.

  Tiles are downloaded once into cache_dir and kept decoded in a small LRU.
  A tile that cannot be fetched or decoded yields None for every point on it
  until retry_after_s has passed, after which the next lookup tries again.
  """

  def __init__(
    self,
    cache_dir: Path,
    tile_url: str = "https://s3.amazonaws.com/elevation-tiles-prod/terrarium/{z}/{x}/{y}.png",
    zoom: int = 12,
    max_tiles_in_memory: int = 64,
    timeout_s: float = 20.0,
    retry_after_s: float = 30.0,
  ) -> None:
    if not 0 <= zoom <= 15:
      raise ValueError("zoom must be between 0 and 15.")
    if max_tiles_in_memory <= 0:
      raise ValueError("max_tiles_in_memory must be positive.")
    self.cache_dir = cache_dir
    self.tile_url = tile_url
    self.zoom = zoom
    self.max_tiles_in_memory = max_tiles_in_memory
    self.timeout_s = timeout_s
    self.retry_after_s = retry_after_s
    self._tiles: OrderedDict[tuple[int, int, int], np.ndarray] = OrderedDict()
    self._failed: dict[tuple[int, int, int], float] = {}
    self._lock = Lock()

  def elevation_at(self, point: GeoPoint) -> float | None:
    if abs(point.lat) > MAX_LAT:
      return None

    tx, ty = self.tile_for(point.lat, point.lon, self.zoom)
    tile = self._tile(self.zoom, tx, ty)
    if tile is None:
      return None

    x, y = self._latlon_to_meters(point.lat, point.lon)
    col, row = ~self._tile_transform(tx, ty, self.zoom) @ (x, y)
    # Pixel values describe pixel centres.
    col = min(max(col - 0.5, 0.0), TILE_SIZE - 1.0)
    row = min(max(row - 0.5, 0.0), TILE_SIZE - 1.0)
    value = bilinear_sample(tile, row, col)
    if math.isnan(value):
      return None
    return value

  def version(self) -> str:
    return f"terrarium:z{self.zoom}:{self.tile_url}"

  def tile_for(self, lat: float, lon: float, zoom: int) -> tuple[int, int]:
    lat_clamped = max(min(lat, MAX_LAT), -MAX_LAT)
    lat_rad = math.radians(lat_clamped)
    n = 1 << zoom
    x = int((lon + 180.0) / 360.0 * n)
    y = int((1.0 - math.log(math.tan(lat_rad) + (1 / math.cos(lat_rad))) / math.pi) / 2.0 * n)
    return max(0, min(n - 1, x)), max(0, min(n - 1, y))

  def fetch_tile(self, zoom: int, x: int, y: int) -> Path | None:
    """Ensure a tile is on disk; returns its path or None when unavailable."""

    tile_path = self.tile_path(zoom, x, y)
    if tile_path.exists():
      return tile_path

    url = self.tile_url.format(z=zoom, x=x, y=y)
    try:
      response = requests.get(url, timeout=self.timeout_s)
    except requests.RequestException as exc:
      logger.warning("Tile download failed for %s: %s", url, exc)
      return None
    if response.status_code != 200:
      logger.warning("Tile %s returned HTTP %s", url, response.status_code)
      return None

    tile_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = tile_path.with_suffix(".tmp")
    tmp_path.write_bytes(response.content)
    tmp_path.replace(tile_path)
    return tile_path

  def _tile(self, zoom: int, x: int, y: int) -> np.ndarray | None:
    key = (zoom, x, y)
    with self._lock:
      if key in self._tiles:
        self._tiles.move_to_end(key)
        return self._tiles[key]
      failed_at = self._failed.get(key)
      if failed_at is not None and time.monotonic() - failed_at < self.retry_after_s:
        return None

    tile = self._load_tile(zoom, x, y)

    with self._lock:
      if tile is None:
        self._failed[key] = time.monotonic()
        return None
      self._failed.pop(key, None)
      self._tiles[key] = tile
      if len(self._tiles) > self.max_tiles_in_memory:
        self._tiles.popitem(last=False)
    return tile

  def _load_tile(self, zoom: int, x: int, y: int) -> np.ndarray | None:
    tile_path = self.fetch_tile(zoom, x, y)
    if tile_path is None:
      return None

    try:
      with Image.open(tile_path) as image:
        rgb = np.asarray(image.convert("RGB"))
    except OSError as exc:
      logger.warning("Could not decode tile %s: %s", tile_path, exc)
      return None

    return decode_terrarium(rgb)

  def tile_path(self, zoom: int, x: int, y: int) -> Path:
    return self.cache_dir / str(zoom) / str(x) / f"{y}.png"

  def _tile_transform(self, tile_x: int, tile_y: int, zoom: int) -> Affine:
    res = INITIAL_RESOLUTION / (2**zoom)
    min_x = tile_x * TILE_SIZE * res - ORIGIN_SHIFT
    max_y = ORIGIN_SHIFT - tile_y * TILE_SIZE * res
    return Affine(res, 0.0, min_x, 0.0, -res, max_y)

  def _latlon_to_meters(self, lat: float, lon: float) -> tuple[float, float]:
    lat_clamped = max(min(lat, MAX_LAT), -MAX_LAT)
    x = EARTH_RADIUS_M * math.radians(lon)
    y = EARTH_RADIUS_M * math.log(math.tan(math.pi / 4 + math.radians(lat_clamped) / 2))
    return x, y

#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

from sightline.config import MAX_LINE_LENGTH_M, Settings
from sightline.elevation import TerrariumProvider
from sightline.geodesy import GeoPoint, destination_point

logger = logging.getLogger("prefetch_tiles")


def parse_args() -> argparse.Namespace:
  parser = argparse.ArgumentParser(description="Prefetch Terrarium tiles covering the reach of a vantage point.")
  parser.add_argument("--lat", type=float, required=True, help="Vantage latitude")
  parser.add_argument("--lon", type=float, required=True, help="Vantage longitude")
  parser.add_argument(
    "--radius-m",
    type=float,
    default=MAX_LINE_LENGTH_M,
    help="Radius to cover in metres (default: the maximum ray length)",
  )
  parser.add_argument("--zoom", type=int, help="Tile zoom (default: SIGHTLINE_TILE_ZOOM or 12)")
  parser.add_argument("--cache-dir", type=Path, help="Tile cache directory (default: SIGHTLINE_TILE_CACHE_DIR)")
  parser.add_argument(
    "--workers",
    type=int,
    default=8,
    help="Number of parallel download workers.",
  )
  return parser.parse_args()


def tile_ranges(
  provider: TerrariumProvider,
  center: GeoPoint,
  radius_m: float,
  zoom: int,
) -> list[tuple[int, int]]:
  north = destination_point(center, 0.0, radius_m)
  south = destination_point(center, 180.0, radius_m)
  east = destination_point(center, 90.0, radius_m)
  west = destination_point(center, 270.0, radius_m)

  min_x, min_y = provider.tile_for(north.lat, west.lon, zoom)
  max_x, max_y = provider.tile_for(south.lat, east.lon, zoom)

  n = 1 << zoom
  if min_x <= max_x:
    xs = list(range(min_x, max_x + 1))
  else:
    # Reach crosses the antimeridian.
    xs = list(range(min_x, n)) + list(range(0, max_x + 1))

  return [(tx, ty) for ty in range(min_y, max_y + 1) for tx in xs]


def main() -> None:
  logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
  args = parse_args()
  settings = Settings.from_env()

  zoom = settings.tile_zoom if args.zoom is None else args.zoom
  cache_dir = args.cache_dir or settings.tile_cache_dir
  cache_dir.mkdir(parents=True, exist_ok=True)
  provider = TerrariumProvider(cache_dir, tile_url=settings.tile_url, zoom=zoom)
  print(f"Using cache dir: {cache_dir}")

  center = GeoPoint(lon=args.lon, lat=args.lat)
  tile_queue = tile_ranges(provider, center, args.radius_m, zoom)
  pending = [tile for tile in tile_queue if not provider.tile_path(zoom, *tile).exists()]
  tiles_cached = len(tile_queue) - len(pending)

  if not pending:
    print("Nothing to fetch. All tiles are cached.")
    return
  print(f"Fetching {len(pending)} tiles with {args.workers} workers...")

  tiles_downloaded = 0
  failed: list[tuple[int, int]] = []
  completed = 0
  with ThreadPoolExecutor(max_workers=max(1, args.workers)) as executor:
    futures = {executor.submit(provider.fetch_tile, zoom, tx, ty): (tx, ty) for tx, ty in pending}
    for future in as_completed(futures):
      if future.result() is None:
        failed.append(futures[future])
      else:
        tiles_downloaded += 1

      completed += 1
      if completed % 200 == 0 or completed == len(pending):
        print(f"  progress: {completed}/{len(pending)}")

  print("Prefetch complete:")
  print(f"  zoom: {zoom}")
  print(f"  tile_count: {len(tile_queue)}")
  print(f"  tiles_downloaded: {tiles_downloaded}")
  print(f"  tiles_cached: {tiles_cached}")
  print(f"  tiles_failed: {len(failed)}")
  if failed:
    logger.warning("Failed tiles: %s", sorted(failed))


if __name__ == "__main__":
  main()

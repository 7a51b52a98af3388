from __future__ import annotations

from sightline.config import Settings
from sightline.elevation.providers.base import ElevationProvider
from sightline.elevation.providers.raster import RasterProvider
from sightline.elevation.providers.synthetic import ConstantProvider, FunctionProvider
from sightline.elevation.providers.terrarium import TerrariumProvider, decode_terrarium


def get_provider(settings: Settings | None = None) -> ElevationProvider:
  settings = settings or Settings()

  if settings.provider == "terrarium":
    return TerrariumProvider(
      settings.tile_cache_dir,
      tile_url=settings.tile_url,
      zoom=settings.tile_zoom,
    )
  if settings.provider == "flat":
    return ConstantProvider(0.0)

  raise ValueError(f"Unknown elevation provider '{settings.provider}'.")


__all__ = [
  "ConstantProvider",
  "ElevationProvider",
  "FunctionProvider",
  "RasterProvider",
  "TerrariumProvider",
  "decode_terrarium",
  "get_provider",
]

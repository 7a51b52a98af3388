from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_DATA_DIR = Path.home() / ".cache" / "sightline"
DEFAULT_TILE_URL = "https://s3.amazonaws.com/elevation-tiles-prod/terrarium/{z}/{x}/{y}.png"

MAX_LINE_LENGTH_M = 100_000.0
# Distinct bearings at the 0.1 degree dedup resolution.
MAX_DISTINCT_BEARINGS = 3600


@dataclass(frozen=True)
class Settings:
  observer_height_m: float = 1.8
  degree_step: float = 0.5
  sample_count: int = 800
  batch_size: int = 45
  target_angle_count: int = 3000
  batch_delay_s: float = 0.010
  max_line_length_m: float = MAX_LINE_LENGTH_M
  debounce_s: float = 0.1
  no_data_elevation: float = 0.0
  provider: str = "terrarium"
  tile_url: str = DEFAULT_TILE_URL
  tile_zoom: int = 12
  tile_cache_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR / "tiles")
  result_cache_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR / "sightlines")

  def __post_init__(self) -> None:
    if self.degree_step <= 0:
      raise ValueError("degree_step must be positive.")
    if self.sample_count < 0:
      raise ValueError("sample_count must be non-negative.")
    if self.batch_size < 1:
      raise ValueError("batch_size must be at least 1.")
    if not 0 < self.max_line_length_m <= MAX_LINE_LENGTH_M:
      raise ValueError(f"max_line_length_m must be in (0, {MAX_LINE_LENGTH_M:.0f}].")

  @classmethod
  def from_env(cls) -> Settings:
    defaults = cls()
    return cls(
      observer_height_m=float(os.getenv("SIGHTLINE_OBSERVER_HEIGHT_M", defaults.observer_height_m)),
      degree_step=float(os.getenv("SIGHTLINE_DEGREE_STEP", defaults.degree_step)),
      sample_count=int(os.getenv("SIGHTLINE_SAMPLE_COUNT", defaults.sample_count)),
      batch_size=int(os.getenv("SIGHTLINE_BATCH_SIZE", defaults.batch_size)),
      target_angle_count=int(os.getenv("SIGHTLINE_TARGET_ANGLE_COUNT", defaults.target_angle_count)),
      batch_delay_s=float(os.getenv("SIGHTLINE_BATCH_DELAY_S", defaults.batch_delay_s)),
      max_line_length_m=float(os.getenv("SIGHTLINE_MAX_LINE_LENGTH_M", defaults.max_line_length_m)),
      debounce_s=float(os.getenv("SIGHTLINE_DEBOUNCE_S", defaults.debounce_s)),
      no_data_elevation=float(os.getenv("SIGHTLINE_NO_DATA_ELEVATION", defaults.no_data_elevation)),
      provider=os.getenv("SIGHTLINE_PROVIDER", defaults.provider).strip().lower(),
      tile_url=os.getenv("SIGHTLINE_TILE_URL", defaults.tile_url),
      tile_zoom=int(os.getenv("SIGHTLINE_TILE_ZOOM", defaults.tile_zoom)),
      tile_cache_dir=Path(os.getenv("SIGHTLINE_TILE_CACHE_DIR", str(defaults.tile_cache_dir))),
      result_cache_dir=Path(os.getenv("SIGHTLINE_RESULT_CACHE_DIR", str(defaults.result_cache_dir))),
    )

from __future__ import annotations

import hashlib
import json
import logging
import re
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sightline.config import DEFAULT_DATA_DIR

logger = logging.getLogger(__name__)

CACHE_VERSION = "v1"
DEFAULT_CACHE_DIR = DEFAULT_DATA_DIR / "sightlines"
RESULT_FILE = "result.json"
_KEY_PATTERN = re.compile(r"[0-9a-f]{64}")


@dataclass(frozen=True)
class CachedSightlines:
  geojson: dict[str, Any]
  metadata: dict[str, Any]
  request: dict[str, Any]
  provider_version: str | None
  created_at: str | None


def make_cache_key(
  vantage_lat: float,
  vantage_lon: float,
  observer_height_m: float,
  max_distance_m: float,
  degree_step: float,
  sample_count: int,
  provider_version: str,
) -> str:
  payload = {
    "cacheVersion": CACHE_VERSION,
    "providerVersion": provider_version,
    "request": {
      "vantage": {
        "lat": float(vantage_lat),
        "lon": float(vantage_lon),
      },
      "observerHeightM": float(observer_height_m),
      "maxDistanceM": float(max_distance_m),
      "degreeStep": float(degree_step),
      "sampleCount": int(sample_count),
    },
  }

  encoded = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
  return hashlib.sha256(encoded).hexdigest()


def is_cache_key(value: str) -> bool:
  return bool(_KEY_PATTERN.fullmatch(value))


def load_cached_sightlines(cache_key: str, cache_dir: Path | None = None) -> CachedSightlines | None:
  if not is_cache_key(cache_key):
    return None

  root = cache_dir or DEFAULT_CACHE_DIR
  result_path = root / cache_key / RESULT_FILE
  if not result_path.exists():
    return None

  try:
    payload = json.loads(result_path.read_text())
  except (OSError, ValueError) as exc:
    logger.warning("Ignoring unreadable cache entry %s: %s", cache_key, exc)
    return None

  geojson = payload.get("geojson")
  if not isinstance(geojson, dict) or geojson.get("type") != "FeatureCollection":
    return None

  return CachedSightlines(
    geojson=geojson,
    metadata=payload.get("metadata", {}),
    request=payload.get("request", {}),
    provider_version=payload.get("providerVersion"),
    created_at=payload.get("createdAt"),
  )


def store_cached_sightlines(
  cache_key: str,
  geojson: dict[str, Any],
  metadata: dict[str, Any],
  request_fingerprint: dict[str, Any],
  provider_version: str,
  cache_dir: Path | None = None,
) -> None:
  root = cache_dir or DEFAULT_CACHE_DIR
  entry_dir = root / cache_key
  entry_dir.mkdir(parents=True, exist_ok=True)

  payload = {
    "cacheVersion": CACHE_VERSION,
    "providerVersion": provider_version,
    "createdAt": datetime.now(timezone.utc).isoformat(),
    "request": request_fingerprint,
    "metadata": metadata,
    "geojson": geojson,
  }

  result_path = entry_dir / RESULT_FILE
  tmp_path = result_path.with_suffix(".json.tmp")
  tmp_path.write_text(json.dumps(payload, sort_keys=True))
  tmp_path.replace(result_path)


def delete_cached_sightlines(cache_key: str, cache_dir: Path | None = None) -> bool:
  if not is_cache_key(cache_key):
    return False

  root = cache_dir or DEFAULT_CACHE_DIR
  entry_dir = root / cache_key
  if not entry_dir.is_dir():
    return False
  shutil.rmtree(entry_dir)
  return True


def list_cached_sightlines(limit: int = 50, cache_dir: Path | None = None) -> list[dict[str, Any]]:
  root = cache_dir or DEFAULT_CACHE_DIR
  if not root.exists():
    return []

  entries: list[dict[str, Any]] = []
  for entry_dir in root.iterdir():
    if not entry_dir.is_dir():
      continue
    result_path = entry_dir / RESULT_FILE
    if not result_path.exists():
      continue
    try:
      payload = json.loads(result_path.read_text())
    except (OSError, ValueError):
      continue

    created_at = payload.get("createdAt")
    if not created_at:
      created_at = datetime.fromtimestamp(result_path.stat().st_mtime, tz=timezone.utc).isoformat()

    metadata = payload.get("metadata") if isinstance(payload.get("metadata"), dict) else {}
    request = payload.get("request") if isinstance(payload.get("request"), dict) else {}

    entries.append(
      {
        "cacheKey": entry_dir.name,
        "createdAt": created_at,
        "providerVersion": payload.get("providerVersion"),
        "request": request,
        "segmentCount": metadata.get("segmentCount"),
      }
    )

  def sort_key(item: dict[str, Any]) -> float:
    try:
      return datetime.fromisoformat(item["createdAt"].replace("Z", "+00:00")).timestamp()
    except (AttributeError, ValueError):
      return 0.0

  entries.sort(key=sort_key, reverse=True)
  return entries[: max(0, limit)]

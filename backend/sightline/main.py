from __future__ import annotations

import asyncio
import json
import logging
import time
from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field, field_validator, model_validator

from sightline.cache import (
  delete_cached_sightlines,
  list_cached_sightlines,
  load_cached_sightlines,
  make_cache_key,
  store_cached_sightlines,
)
from sightline.config import MAX_DISTINCT_BEARINGS, MAX_LINE_LENGTH_M, Settings
from sightline.elevation import ElevationProvider, get_provider
from sightline.geodesy import GeoPoint
from sightline.output import visibility_metadata, visibility_set_to_geojson
from sightline.readout import inspect_point
from sightline.scheduler import ProgressiveScheduler
from sightline.sweep import Observer, VisibilitySet, full_sweep
from sightline.viewport import Viewport, max_ray_distance

logger = logging.getLogger(__name__)

app = FastAPI(title="Sightline API")

MAX_SAMPLE_COUNT = 5000

app.add_middleware(
  CORSMiddleware,
  allow_origins=[
    "http://localhost:5173",
    "http://127.0.0.1:5173",
  ],
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)


class LatLon(BaseModel):
  lat: float
  lon: float

  @field_validator("lat")
  @classmethod
  def validate_lat(cls, value: float) -> float:
    if not -90 <= value <= 90:
      raise ValueError("Latitude must be between -90 and 90.")
    return value

  @field_validator("lon")
  @classmethod
  def validate_lon(cls, value: float) -> float:
    if not -180 <= value <= 180:
      raise ValueError("Longitude must be between -180 and 180.")
    return value

  def to_point(self) -> GeoPoint:
    return GeoPoint(lon=self.lon, lat=self.lat)


class ViewportBounds(BaseModel):
  north: float = Field(ge=-90, le=90)
  south: float = Field(ge=-90, le=90)
  east: float
  west: float

  @model_validator(mode="after")
  def validate_order(self) -> ViewportBounds:
    if self.south > self.north:
      raise ValueError("south must not be greater than north.")
    return self

  def to_viewport(self) -> Viewport:
    return Viewport(north=self.north, south=self.south, east=self.east, west=self.west)


class SightlineRequest(BaseModel):
  vantage: LatLon
  observerHeightM: float | None = Field(default=None, ge=0)
  viewport: ViewportBounds | None = None
  maxDistanceM: float | None = Field(default=None, gt=0, le=MAX_LINE_LENGTH_M)
  degreeStep: float | None = Field(default=None, gt=0, le=90)
  sampleCount: int | None = Field(default=None, ge=0, le=MAX_SAMPLE_COUNT)


class ProgressiveRequest(SightlineRequest):
  targetAngleCount: int | None = Field(default=None, ge=1, le=MAX_DISTINCT_BEARINGS)
  batchSize: int | None = Field(default=None, ge=1)
  batchDelayMs: float | None = Field(default=None, ge=0)


class SightlineResponse(BaseModel):
  cacheKey: str
  vantage: LatLon
  observerHeightM: float
  maxDistanceM: float
  geojson: dict[str, Any]
  metadata: dict[str, Any]
  cacheHit: bool
  timings: dict[str, float] | None = None


class InspectRequest(BaseModel):
  vantage: LatLon
  target: LatLon
  observerHeightM: float | None = Field(default=None, ge=0)


class InspectResponse(BaseModel):
  distanceM: float
  bearingDeg: float
  elevationAngleRad: float
  targetElevationM: float | None = None
  labels: dict[str, str]


class SightlineHistoryItem(BaseModel):
  cacheKey: str
  createdAt: str | None = None
  providerVersion: str | None = None
  request: dict[str, Any] | None = None
  segmentCount: int | None = None


class SightlineHistoryResponse(BaseModel):
  items: list[SightlineHistoryItem]


class SightlineCacheResponse(BaseModel):
  cacheKey: str
  createdAt: str | None = None
  providerVersion: str | None = None
  request: dict[str, Any] | None = None
  geojson: dict[str, Any]
  metadata: dict[str, Any]


@lru_cache
def get_settings() -> Settings:
  return Settings.from_env()


_providers: dict[Settings, ElevationProvider] = {}


def get_elevation_provider(settings: Settings = Depends(get_settings)) -> ElevationProvider:
  provider = _providers.get(settings)
  if provider is None:
    try:
      provider = get_provider(settings)
    except ValueError as exc:
      raise HTTPException(status_code=502, detail=f"Elevation provider error: {exc}") from exc
    _providers[settings] = provider
  return provider


@app.get("/health")
def health_check() -> dict:
  return {"status": "ok"}


@app.post("/sightlines", response_model=SightlineResponse)
def compute_sightlines_endpoint(
  payload: SightlineRequest,
  debug: int = Query(0, ge=0, le=1),
  settings: Settings = Depends(get_settings),
  provider: ElevationProvider = Depends(get_elevation_provider),
) -> SightlineResponse:
  timings: dict[str, float] = {}
  request_start = time.perf_counter()

  observer = _observer(payload, settings)
  max_distance = _max_distance(payload, observer, settings)
  degree_step = payload.degreeStep or settings.degree_step
  sample_count = settings.sample_count if payload.sampleCount is None else payload.sampleCount
  provider_version = provider.version()

  cache_key = make_cache_key(
    vantage_lat=observer.point.lat,
    vantage_lon=observer.point.lon,
    observer_height_m=observer.height_m,
    max_distance_m=max_distance,
    degree_step=degree_step,
    sample_count=sample_count,
    provider_version=provider_version,
  )
  cached = load_cached_sightlines(cache_key, cache_dir=settings.result_cache_dir)
  if cached is not None:
    timings["cache_hit_s"] = time.perf_counter() - request_start
    return SightlineResponse(
      cacheKey=cache_key,
      vantage=payload.vantage,
      observerHeightM=observer.height_m,
      maxDistanceM=max_distance,
      geojson=cached.geojson,
      metadata=cached.metadata,
      cacheHit=True,
      timings=timings if debug else None,
    )

  compute_start = time.perf_counter()
  visibility = full_sweep(
    provider,
    observer,
    max_distance,
    degree_step,
    sample_count,
    no_data_elevation=settings.no_data_elevation,
  )
  timings["sweep_compute_s"] = time.perf_counter() - compute_start

  geojson = visibility_set_to_geojson(visibility)
  metadata = visibility_metadata(visibility)
  metadata.update({"degreeStep": degree_step, "sampleCount": sample_count})

  # A sweep with no terrain at all says nothing about the terrain; don't pin it.
  no_terrain = metadata["noDataSamples"] >= metadata["rayCount"] * (sample_count + 2)
  if not no_terrain:
    cache_start = time.perf_counter()
    store_cached_sightlines(
      cache_key=cache_key,
      geojson=geojson,
      metadata=metadata,
      request_fingerprint={
        "vantage": {"lat": observer.point.lat, "lon": observer.point.lon},
        "observerHeightM": observer.height_m,
        "maxDistanceM": max_distance,
        "degreeStep": degree_step,
        "sampleCount": sample_count,
      },
      provider_version=provider_version,
      cache_dir=settings.result_cache_dir,
    )
    timings["cache_store_s"] = time.perf_counter() - cache_start
  timings["total_s"] = time.perf_counter() - request_start

  return SightlineResponse(
    cacheKey=cache_key,
    vantage=payload.vantage,
    observerHeightM=observer.height_m,
    maxDistanceM=max_distance,
    geojson=geojson,
    metadata=metadata,
    cacheHit=False,
    timings=timings if debug else None,
  )


@app.post("/sightlines/progressive")
async def stream_sightlines_endpoint(
  payload: ProgressiveRequest,
  settings: Settings = Depends(get_settings),
  provider: ElevationProvider = Depends(get_elevation_provider),
) -> StreamingResponse:
  observer = _observer(payload, settings)
  max_distance = _max_distance(payload, observer, settings)
  sample_count = settings.sample_count if payload.sampleCount is None else payload.sampleCount
  target = payload.targetAngleCount or settings.target_angle_count
  batch_size = payload.batchSize or settings.batch_size
  batch_delay_s = settings.batch_delay_s if payload.batchDelayMs is None else payload.batchDelayMs / 1000.0

  async def updates():
    queue: asyncio.Queue[str | None] = asyncio.Queue()

    def on_update(visibility: VisibilitySet) -> None:
      queue.put_nowait(_progress_line(scheduler, visibility))

    scheduler = ProgressiveScheduler(provider, on_update=on_update, no_data_elevation=settings.no_data_elevation)
    task = scheduler.start(
      observer,
      max_distance,
      target_angle_count=target,
      batch_size=batch_size,
      batch_delay_s=batch_delay_s,
      sample_count=sample_count,
    )
    if task is None:
      raise RuntimeError("Progressive sweep did not start.")
    task.add_done_callback(lambda _: queue.put_nowait(None))

    try:
      while True:
        line = await queue.get()
        if line is None:
          break
        yield line
    finally:
      scheduler.cancel()

  return StreamingResponse(updates(), media_type="application/x-ndjson")


@app.post("/inspect", response_model=InspectResponse)
def inspect_endpoint(
  payload: InspectRequest,
  settings: Settings = Depends(get_settings),
  provider: ElevationProvider = Depends(get_elevation_provider),
) -> InspectResponse:
  height = settings.observer_height_m if payload.observerHeightM is None else payload.observerHeightM
  observer = Observer(point=payload.vantage.to_point(), height_m=height)
  readout = inspect_point(provider, observer, payload.target.to_point(), settings.no_data_elevation)
  return InspectResponse(
    distanceM=readout.distance_m,
    bearingDeg=readout.bearing_deg,
    elevationAngleRad=readout.elevation_angle_rad,
    targetElevationM=readout.target_elevation_m,
    labels=readout.labels(),
  )


@app.get("/sightlines/history", response_model=SightlineHistoryResponse)
def sightline_history(
  limit: int = Query(50, ge=1, le=500),
  settings: Settings = Depends(get_settings),
) -> SightlineHistoryResponse:
  items = list_cached_sightlines(limit=limit, cache_dir=settings.result_cache_dir)
  return SightlineHistoryResponse(items=items)


@app.get("/sightlines/cache/{cache_key}", response_model=SightlineCacheResponse)
def sightline_cache(cache_key: str, settings: Settings = Depends(get_settings)) -> SightlineCacheResponse:
  cached = load_cached_sightlines(cache_key, cache_dir=settings.result_cache_dir)
  if cached is None:
    raise HTTPException(status_code=404, detail="Cached sightlines not found.")

  return SightlineCacheResponse(
    cacheKey=cache_key,
    createdAt=cached.created_at,
    providerVersion=cached.provider_version,
    request=cached.request,
    geojson=cached.geojson,
    metadata=cached.metadata,
  )


@app.delete("/sightlines/cache/{cache_key}")
def delete_sightline_cache(cache_key: str, settings: Settings = Depends(get_settings)) -> dict:
  if not delete_cached_sightlines(cache_key, cache_dir=settings.result_cache_dir):
    raise HTTPException(status_code=404, detail="Cached sightlines not found.")
  return {"status": "deleted", "cacheKey": cache_key}


def _observer(payload: SightlineRequest, settings: Settings) -> Observer:
  height = settings.observer_height_m if payload.observerHeightM is None else payload.observerHeightM
  return Observer(point=payload.vantage.to_point(), height_m=height)


def _max_distance(payload: SightlineRequest, observer: Observer, settings: Settings) -> float:
  ceiling = settings.max_line_length_m
  if payload.maxDistanceM is not None:
    return min(payload.maxDistanceM, ceiling)
  if payload.viewport is not None:
    return max_ray_distance(observer.point, payload.viewport.to_viewport().corners(), ceiling_m=ceiling)
  return ceiling


def _progress_line(scheduler: ProgressiveScheduler, visibility: VisibilitySet) -> str:
  body = {
    "state": scheduler.state.value,
    "bearingsSampled": len(scheduler.sampled),
    "metadata": visibility_metadata(visibility),
    "geojson": visibility_set_to_geojson(visibility),
  }
  return json.dumps(body) + "\n"

from __future__ import annotations

import asyncio
import logging
import random

from sightline.config import Settings
from sightline.elevation import ElevationProvider
from sightline.geodesy import GeoPoint
from sightline.scheduler import ProgressiveScheduler, UpdateCallback
from sightline.sweep import Observer
from sightline.viewport import Viewport, max_ray_distance

logger = logging.getLogger(__name__)


class SightlineSession:
  """
  Vantage point, observer height and viewport for one interactive client.

  Every change cancels the running progressive sweep and schedules a fresh one
  after settings.debounce_s; changes arriving inside that window restart the
  timer, so a drag or a pan produces a single sweep once it settles. Must be
  driven from a running event loop.
  """

  def __init__(
    self,
    provider: ElevationProvider,
    on_update: UpdateCallback | None = None,
    settings: Settings | None = None,
    rng: random.Random | None = None,
  ) -> None:
    self.settings = settings or Settings()
    self.vantage: GeoPoint | None = None
    self.viewport: Viewport | None = None
    self.observer_height_m = self.settings.observer_height_m
    self.scheduler = ProgressiveScheduler(
      provider,
      on_update=on_update,
      rng=rng,
      no_data_elevation=self.settings.no_data_elevation,
    )
    self._pending: asyncio.TimerHandle | None = None

  @property
  def observer(self) -> Observer | None:
    if self.vantage is None:
      return None
    return Observer(point=self.vantage, height_m=self.observer_height_m)

  @property
  def pending(self) -> bool:
    return self._pending is not None

  def max_distance_m(self) -> float:
    ceiling = self.settings.max_line_length_m
    if self.vantage is None or self.viewport is None:
      return ceiling
    return max_ray_distance(self.vantage, self.viewport.corners(), ceiling_m=ceiling)

  def set_vantage(self, point: GeoPoint | None) -> None:
    if point is None:
      self.clear_vantage()
      return
    self.vantage = point
    self.request_update()

  def set_observer_height(self, height_m: float) -> None:
    if height_m < 0:
      raise ValueError("Observer height must be non-negative.")
    self.observer_height_m = height_m
    if self.vantage is not None:
      self.request_update()

  def set_viewport(self, viewport: Viewport) -> None:
    self.viewport = viewport
    if self.vantage is not None:
      self.request_update()

  def clear_vantage(self) -> None:
    self.vantage = None
    self._cancel_pending()
    self.scheduler.start(None, self.settings.max_line_length_m)

  def request_update(self) -> None:
    self.scheduler.cancel()
    self._cancel_pending()
    loop = asyncio.get_running_loop()
    self._pending = loop.call_later(self.settings.debounce_s, self._restart)

  def close(self) -> None:
    self._cancel_pending()
    self.scheduler.cancel()

  def _cancel_pending(self) -> None:
    if self._pending is not None:
      self._pending.cancel()
      self._pending = None

  def _restart(self) -> None:
    self._pending = None
    observer = self.observer
    if observer is None:
      return

    max_distance = self.max_distance_m()
    logger.info(
      "Restarting sweep at %.6f,%.6f (height %.1f m, reach %.0f m)",
      observer.point.lat,
      observer.point.lon,
      observer.height_m,
      max_distance,
    )
    self.scheduler.start(
      observer,
      max_distance,
      target_angle_count=self.settings.target_angle_count,
      batch_size=self.settings.batch_size,
      batch_delay_s=self.settings.batch_delay_s,
      sample_count=self.settings.sample_count,
    )

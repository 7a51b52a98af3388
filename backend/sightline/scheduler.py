from __future__ import annotations

import asyncio
import enum
import logging
import random
from dataclasses import dataclass

from sightline.config import MAX_DISTINCT_BEARINGS
from sightline.elevation import ElevationProvider
from sightline.raycast import RayResult, trace_ray
from sightline.sweep import Observer, UpdateCallback, VisibilitySet

logger = logging.getLogger(__name__)


class SweepState(str, enum.Enum):
  IDLE = "idle"
  RUNNING = "running"
  COMPLETED = "completed"
  CANCELLED = "cancelled"


def bearing_key(bearing: float) -> float:
  """Dedup key: bearing rounded to 0.1 degree, with 360.0 folded onto 0.0."""

  return round(bearing * 10) / 10 % 360.0


@dataclass(frozen=True)
class _Run:
  generation: int
  observer: Observer
  max_distance_m: float
  target_angle_count: int
  batch_size: int
  batch_delay_s: float
  sample_count: int


class ProgressiveScheduler:
  """
  Refines a viewshed incrementally with randomly drawn bearings.

  One instance per session. start() launches the run as an asyncio task on the
  running loop; each batch casts up to batch_size new bearings in a worker
  thread, appends their segments and hands the whole accumulated set to
  on_update. cancel() takes effect at the next batch boundary; results of a
  batch still in flight at that point are dropped.
  """

  def __init__(
    self,
    provider: ElevationProvider,
    on_update: UpdateCallback | None = None,
    rng: random.Random | None = None,
    no_data_elevation: float = 0.0,
  ) -> None:
    self.provider = provider
    self.on_update = on_update
    self.rng = rng or random.Random()
    self.no_data_elevation = no_data_elevation
    self.state = SweepState.IDLE
    self.visibility = VisibilitySet()
    self.sampled: set[float] = set()
    self.batches_run = 0
    self._generation = 0
    self._run: _Run | None = None
    self._task: asyncio.Task | None = None

  @property
  def task(self) -> asyncio.Task | None:
    return self._task

  def prepare(
    self,
    observer: Observer,
    max_distance_m: float,
    target_angle_count: int = 3000,
    batch_size: int = 45,
    batch_delay_s: float = 0.010,
    sample_count: int = 800,
  ) -> _Run:
    """Reset state for a new run without scheduling anything."""

    if batch_size < 1:
      raise ValueError("batch_size must be at least 1.")
    if batch_delay_s < 0:
      raise ValueError("batch_delay_s must be non-negative.")

    self.cancel()
    self._generation += 1
    self.visibility = VisibilitySet()
    self.sampled = set()
    self.batches_run = 0
    run = _Run(
      generation=self._generation,
      observer=observer,
      max_distance_m=max_distance_m,
      target_angle_count=max(0, min(target_angle_count, MAX_DISTINCT_BEARINGS)),
      batch_size=batch_size,
      batch_delay_s=batch_delay_s,
      sample_count=sample_count,
    )
    self._run = run
    self.state = SweepState.RUNNING
    logger.debug(
      "Progressive sweep %d from %s: target %d bearings",
      self._generation,
      observer.point,
      run.target_angle_count,
    )
    return run

  def start(
    self,
    observer: Observer | None,
    max_distance_m: float,
    target_angle_count: int = 3000,
    batch_size: int = 45,
    batch_delay_s: float = 0.010,
    sample_count: int = 800,
  ) -> asyncio.Task | None:
    """Cancel any current run and begin a new one. Must be called from a running event loop."""

    if observer is None:
      self.cancel()
      self._generation += 1
      self.visibility = VisibilitySet()
      self.sampled = set()
      self._run = None
      self.state = SweepState.IDLE
      self._emit()
      return None

    run = self.prepare(
      observer,
      max_distance_m,
      target_angle_count=target_angle_count,
      batch_size=batch_size,
      batch_delay_s=batch_delay_s,
      sample_count=sample_count,
    )
    self._task = asyncio.get_running_loop().create_task(self._run_loop(run))
    return self._task

  def cancel(self) -> None:
    if self.state is SweepState.RUNNING:
      self.state = SweepState.CANCELLED
      logger.debug("Progressive sweep %d cancelled after %d bearings", self._generation, len(self.sampled))
    task = self._task
    self._task = None
    if task is not None and not task.done() and task is not asyncio.current_task():
      task.cancel()

  def run_batch(self) -> int:
    """Run one batch synchronously. Returns the number of bearings cast."""

    run = self._run
    if run is None or self.state is not SweepState.RUNNING:
      return 0

    bearings = self._draw_bearings(run)
    results = self._cast(run, bearings)
    if not self._is_current(run):
      return 0
    return self._apply(run, results)

  async def _run_loop(self, run: _Run) -> None:
    try:
      while self._is_current(run):
        bearings = self._draw_bearings(run)
        results = await asyncio.to_thread(self._cast, run, bearings)
        if not self._is_current(run):
          return
        self._apply(run, results)
        if self.state is not SweepState.RUNNING:
          return
        await asyncio.sleep(run.batch_delay_s)
    except Exception:
      logger.exception("Progressive sweep %d failed", run.generation)
      if self._is_current(run):
        self.state = SweepState.CANCELLED

  def _is_current(self, run: _Run) -> bool:
    return run.generation == self._generation and self.state is SweepState.RUNNING

  def _draw_bearings(self, run: _Run) -> list[float]:
    drawn: list[float] = []
    keys: set[float] = set()
    remaining = run.target_angle_count - len(self.sampled)
    wanted = min(run.batch_size, remaining)

    while len(drawn) < wanted:
      bearing = self.rng.random() * 360.0
      key = bearing_key(bearing)
      if key in self.sampled or key in keys:
        continue
      keys.add(key)
      drawn.append(bearing)

    return drawn

  def _cast(self, run: _Run, bearings: list[float]) -> list[RayResult]:
    results: list[RayResult] = []
    for bearing in bearings:
      # A superseded run stops between rays; its partial batch is discarded.
      if not self._is_current(run):
        break
      results.append(
        trace_ray(
          self.provider,
          run.observer.point,
          bearing,
          run.max_distance_m,
          run.observer.height_m,
          run.sample_count,
          self.no_data_elevation,
        )
      )
    return results

  def _apply(self, run: _Run, results: list[RayResult]) -> int:
    for result in results:
      self.sampled.add(bearing_key(result.bearing))
      self.visibility.add(result)
    self.batches_run += 1

    if len(self.sampled) >= run.target_angle_count:
      self.state = SweepState.COMPLETED
      logger.debug(
        "Progressive sweep %d completed: %d bearings, %d segments",
        run.generation,
        len(self.sampled),
        len(self.visibility),
      )

    self._emit()
    return len(results)

  def _emit(self) -> None:
    if self.on_update is not None:
      self.on_update(self.visibility)

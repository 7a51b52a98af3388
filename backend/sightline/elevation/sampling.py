from __future__ import annotations

import math

import numpy as np


def bilinear_sample(grid: np.ndarray, row: float, col: float) -> float:
  """Bilinear interpolation on a 2D array; NaN outside the grid or next to NaN cells."""

  rows, cols = grid.shape

  r0 = int(math.floor(row))
  c0 = int(math.floor(col))
  r1 = min(r0 + 1, rows - 1)
  c1 = min(c0 + 1, cols - 1)

  if r0 < 0 or c0 < 0 or r0 >= rows or c0 >= cols:
    return float("nan")

  dr = row - r0
  dc = col - c0

  e00 = float(grid[r0, c0])
  e10 = float(grid[r1, c0])
  e01 = float(grid[r0, c1])
  e11 = float(grid[r1, c1])

  if any(math.isnan(value) for value in (e00, e10, e01, e11)):
    return float("nan")

  return (
    e00 * (1 - dr) * (1 - dc)
    + e10 * dr * (1 - dc)
    + e01 * (1 - dr) * dc
    + e11 * dr * dc
  )

"""
grid_analytics/analytics/statistics.py
──────────────────────────────────────
Pure aggregate statistics over ordered (value, timestamp) points.

Policies:
  - Empty input → 0.0 for total, average, extremes and std_dev
  - NaN / Inf propagate through every reduction (no clamping here)
  - moving_average returns one value per input point; the first
    `window - 1` entries average over the prefix seen so far
"""
from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

import numpy as np

from grid_analytics.errors import InvalidInputError


@dataclass(frozen=True)
class Point:
    value: float
    timestamp: datetime | None = None


def to_points(items: Iterable, value: Callable[[object], float]) -> list[Point]:
    """Project arbitrary records onto Points, keeping their timestamps."""
    return [Point(value=float(value(i)), timestamp=getattr(i, "timestamp", None)) for i in items]


def _values(points: Sequence[Point]) -> np.ndarray:
    return np.fromiter((p.value for p in points), dtype=float, count=len(points))


# ── Reductions ────────────────────────────────────────────────────────────────

def total(points: Sequence[Point]) -> float:
    if not points:
        return 0.0
    return float(np.sum(_values(points)))


def average(points: Sequence[Point]) -> float:
    if not points:
        return 0.0
    return total(points) / len(points)


def minimum(points: Sequence[Point]) -> float:
    if not points:
        return 0.0
    return float(np.min(_values(points)))


def maximum(points: Sequence[Point]) -> float:
    if not points:
        return 0.0
    return float(np.max(_values(points)))


def extremes(points: Sequence[Point]) -> tuple[float, float]:
    """(max, min) seeded from the first point, so all-negative series work."""
    return maximum(points), minimum(points)


def std_dev(points: Sequence[Point], mean: float | None = None) -> float:
    """Population standard deviation: sqrt(Σ(v - mean)² / n)."""
    if not points:
        return 0.0
    if mean is None:
        mean = average(points)
    deviations = _values(points) - mean
    return float(math.sqrt(np.sum(deviations * deviations) / len(points)))


def moving_average(points: Sequence[Point], window: int) -> list[float]:
    """
    Trailing moving average, same length as `points`.

    Element i is the mean of points[max(0, i - window + 1) : i + 1].
    Each element only sees its own window, so a NaN poisons at most
    `window` outputs.
    """
    if window <= 0:
        raise InvalidInputError(f"moving average window must be positive, got {window}")
    values = _values(points)
    return [
        float(np.mean(values[max(0, i - window + 1) : i + 1]))
        for i in range(len(values))
    ]


# ── Rounding ──────────────────────────────────────────────────────────────────

def round_half_away(x: float, places: int) -> float:
    """Round half away from zero on the scaled value; non-finite passes through."""
    if not math.isfinite(x):
        return x
    scale = 10.0 ** places
    return math.copysign(math.floor(abs(x) * scale + 0.5), x) / scale


def round_series(xs: Iterable[float], places: int) -> list[float]:
    return [round_half_away(x, places) for x in xs]

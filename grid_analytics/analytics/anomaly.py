"""
grid_analytics/analytics/anomaly.py
───────────────────────────────────
Anomaly classification for a single incoming meter reading.

The detector is stateless: every call receives the trailing historical
window it should judge the reading against.

Two sub-detectors run over the combined series
(last `window` historical points + the current point):

  spike    trailing Z-score against the previous `window` points
           z = |x - μ_trailing| / σ_trailing   (population σ)
           z > sigma → spike   (a single prior point is enough; a flat
           baseline makes any deviation an infinite z)
  outlier  interquartile-range fences, numpy linear-interpolated quartiles
           x < Q1 - 1.5·IQR  or  x > Q3 + 1.5·IQR → outlier

Severity is graded separately from the boolean, on the ratio of the
current power to the historical mean:
  ≥ 2.0 × mean → critical,  ≥ 1.5 → high,  ≥ 1.25 → medium,  else low
"""
from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np
import pandas as pd

from config.alerts import SEVERITY_RATIOS, AnomalySeverity
from grid_analytics.analytics.statistics import average, std_dev, to_points
from grid_analytics.data.models import AnomalyResult, Reading
from grid_analytics.errors import InvalidInputError

DEFAULT_WINDOW = 24      # trailing points
DEFAULT_SIGMA = 2.0      # standard deviations
IQR_FACTOR = 1.5
MIN_PERIODS = 1


# ── Sub-detectors ─────────────────────────────────────────────────────────────

def trailing_zscore(
    series: pd.Series,
    window: int = DEFAULT_WINDOW,
    min_periods: int = MIN_PERIODS,
) -> pd.Series:
    """
    Z-score of each point against the window of points before it.

    The point itself is excluded from its own baseline. A flat baseline
    gives inf for any deviation and NaN for none.
    """
    baseline = series.shift(1).rolling(window=window, min_periods=min_periods)
    roll_mean = baseline.mean()
    roll_std = baseline.std(ddof=0)
    return (series - roll_mean).abs() / roll_std


def detect_spikes(
    values: Sequence[float],
    window: int = DEFAULT_WINDOW,
    sigma: float = DEFAULT_SIGMA,
) -> list[int]:
    """Indices whose trailing Z-score exceeds `sigma`. Non-finite values are skipped."""
    series = pd.Series(values, dtype=float)
    finite = series[np.isfinite(series)]
    if finite.empty:
        return []
    zscores = trailing_zscore(finite, window=window)
    return [int(i) for i in finite.index[(zscores > sigma).to_numpy()]]


def detect_outliers(values: Sequence[float], factor: float = IQR_FACTOR) -> list[int]:
    """Indices outside the Tukey fences of the finite values."""
    arr = np.asarray(values, dtype=float)
    idx = np.flatnonzero(np.isfinite(arr))
    if idx.size == 0:
        return []
    finite = arr[idx]
    q1, q3 = np.percentile(finite, [25, 75])
    iqr = q3 - q1
    lower, upper = q1 - factor * iqr, q3 + factor * iqr
    return [int(i) for i in idx[(finite < lower) | (finite > upper)]]


# ── Grading ───────────────────────────────────────────────────────────────────

def classify_severity(power: float, mean: float) -> AnomalySeverity:
    if mean > 0:
        for severity in (AnomalySeverity.CRITICAL, AnomalySeverity.HIGH, AnomalySeverity.MEDIUM):
            if power >= mean * SEVERITY_RATIOS[severity]:
                return severity
    return AnomalySeverity.LOW


def deviation_percent(power: float, mean: float) -> float:
    if mean == 0 or not math.isfinite(mean):
        return 0.0
    pct = (power - mean) / mean * 100.0
    return pct if math.isfinite(pct) else 0.0


# ── Main API ──────────────────────────────────────────────────────────────────

def detect_anomaly(
    current: Reading,
    historical: Sequence[Reading],
    window: int = DEFAULT_WINDOW,
    sigma: float = DEFAULT_SIGMA,
) -> AnomalyResult:
    """
    Classify `current` against `historical` (ascending time order).

    Args:
        current: The reading under evaluation
        historical: Trailing baseline window, same facility (and meter)
        window: Trailing points used by the spike and outlier checks
        sigma: Z-score multiplier for the spike check and the threshold

    Returns:
        AnomalyResult; never raises for NaN / Inf power values.
    """
    if window <= 0:
        raise InvalidInputError(f"anomaly window must be positive, got {window}")
    if sigma <= 0:
        raise InvalidInputError(f"sigma must be positive, got {sigma}")

    points = to_points(historical, lambda r: r.power_kw)
    mean = average(points)
    std = std_dev(points, mean)

    threshold = mean + std * sigma
    if not math.isfinite(threshold):
        threshold = 0.0

    series = [p.value for p in points[-window:]] + [current.power_kw]
    last = len(series) - 1
    spikes = detect_spikes(series, window=window, sigma=sigma)
    outliers = detect_outliers(series)
    spike = last in spikes
    outlier = last in outliers

    is_anomaly = spike or outlier
    severity = classify_severity(current.power_kw, mean)

    fired = []
    if spike:
        fired.append(f"z-score spike above {sigma:.2f}σ")
    if outlier:
        fired.append("outside IQR fences")

    if not historical and current.power_kw > 0:
        # A missing baseline must not silence the first alert.
        is_anomaly = True
        severity = AnomalySeverity.LOW
        fired = ["no historical baseline"]

    reason = (
        f"window={window} sigma={sigma:.2f} spikes={len(spikes)} outliers={len(outliers)}: "
        + ("; ".join(fired) if fired else "within normal range")
    )

    return AnomalyResult(
        is_anomaly=is_anomaly,
        current_power=current.power_kw,
        mean=mean,
        std_dev=std,
        threshold=threshold,
        deviation_percent=deviation_percent(current.power_kw, mean),
        severity=severity,
        reason=reason,
        spike=spike,
        outlier=outlier,
    )

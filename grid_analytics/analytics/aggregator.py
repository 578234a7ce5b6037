"""
grid_analytics/analytics/aggregator.py
──────────────────────────────────────
Daily aggregation of one facility's readings into a DailyAnalytics record.

Pipeline:
  readings → points → sum / average / moving average
           → kWh→MWh, peak/off-peak cost split
           → first-seeded extremes
           → hour-of-day buckets (local time) → peak hour
           → voltage / current means, voltage σ, power factor
           → rounding: power & money 2 dp, MWh & ratios 3 dp

Re-running on the same readings yields an identical record apart from
`created_at`; hourly buckets are left unrounded so avg == total / count
holds exactly.
"""
from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import UTC, date as date_type, datetime

import numpy as np
import pandas as pd

from config.tariffs import (
    BUSINESS_HOURS,
    DEFAULT_PEAK_SHARE,
    DEFAULT_RATE_PER_KWH,
    HIGH_AVERAGE_POWER_KW,
    HIGH_VOLTAGE_STDDEV,
    LOW_POWER_FACTOR,
)
from grid_analytics.analytics.converter import calculate_efficiency, cost_breakdown, kwh_to_mwh
from grid_analytics.analytics.statistics import (
    average,
    extremes,
    moving_average,
    round_half_away,
    round_series,
    std_dev,
    to_points,
    total,
)
from grid_analytics.data.models import DailyAnalytics, HourlyBucket, Reading, Recommendation
from grid_analytics.errors import InvalidInputError

DEFAULT_MOVING_AVERAGE_WINDOW = 12


def parse_date(value: str | date_type) -> str:
    """Normalise a report date to YYYY-MM-DD."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date_type):
        return value.isoformat()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date().isoformat()
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"bad date format {value!r}, expected YYYY-MM-DD", date=str(value)) from exc


# ── Hourly breakdown ──────────────────────────────────────────────────────────

def hourly_buckets(readings: Sequence[Reading], tz: str = "UTC") -> dict[str, HourlyBucket]:
    """Group readings by local hour-of-day ("00".."23"); empty hours are absent."""
    if not readings:
        return {}
    frame = pd.DataFrame(
        {
            "timestamp": [r.timestamp for r in readings],
            "power_kw": [r.power_kw for r in readings],
        }
    )
    hours = pd.to_datetime(frame["timestamp"], utc=True).dt.tz_convert(tz).dt.strftime("%H")

    buckets: dict[str, HourlyBucket] = {}
    for hour, group in frame.groupby(hours, sort=True)["power_kw"]:
        values = group.to_numpy(dtype=float)
        total_power = float(np.sum(values))
        buckets[str(hour)] = HourlyBucket(
            count=len(values),
            total_power=total_power,
            avg_power=total_power / len(values),
            max_power=float(np.max(values)),
        )
    return buckets


def derive_peak_hour(buckets: dict[str, HourlyBucket]) -> str:
    """Hour with the highest max power; ties go to the earliest hour."""
    if not buckets:
        return ""

    def rank(item: tuple[str, HourlyBucket]) -> tuple[float, str]:
        hour, bucket = item
        peak = bucket.max_power if not math.isnan(bucket.max_power) else -math.inf
        return -peak, hour

    return sorted(buckets.items(), key=rank)[0][0]


# ── Main API ──────────────────────────────────────────────────────────────────

def aggregate_daily(
    readings: Sequence[Reading],
    date: str | date_type,
    *,
    facility_id: str | None = None,
    moving_average_window: int = DEFAULT_MOVING_AVERAGE_WINDOW,
    rate_per_kwh: float = DEFAULT_RATE_PER_KWH,
    peak_share: float = DEFAULT_PEAK_SHARE,
    tz: str = "UTC",
    created_at: datetime | None = None,
) -> DailyAnalytics:
    """
    Build the DailyAnalytics record for one facility and day.

    Args:
        readings: The day's readings; must be non-empty (callers answer
            "no data" themselves for empty days)
        date: Report date, YYYY-MM-DD
        facility_id: Defaults to the facility of the first reading
        moving_average_window: Trailing window for the moving-average series
        rate_per_kwh: Flat tariff applied to both tiers
        peak_share: Fraction of consumption billed as peak
        tz: Timezone used to bucket readings by local hour
        created_at: Creation timestamp; defaults to now (UTC)
    """
    day = parse_date(date)
    if not readings:
        raise InvalidInputError("no readings to aggregate", facility_id=facility_id, date=day)

    ordered = sorted(readings, key=lambda r: r.timestamp)
    facility_id = facility_id or ordered[0].facility_id

    power = to_points(ordered, lambda r: r.power_kw)
    total_kwh = total(power)
    avg_power = average(power)
    moving = moving_average(power, moving_average_window)

    costs = cost_breakdown(total_kwh, rate_per_kwh, peak_share)
    estimated_cost = sum(costs.values())

    peak_power, min_power = extremes(power)
    buckets = hourly_buckets(ordered, tz=tz)

    voltage = to_points(ordered, lambda r: r.voltage)
    avg_voltage = average(voltage)
    voltage_stddev = std_dev(voltage, avg_voltage)
    avg_current = average(to_points(ordered, lambda r: r.current))

    # Apparent power ≈ V̄ · Ī
    apparent = avg_voltage * avg_current
    if not (math.isfinite(apparent) and apparent > 0):
        apparent = 0.0
    power_factor = calculate_efficiency(apparent, avg_power) if apparent > 0 else 0.0

    return DailyAnalytics(
        facility_id=facility_id,
        date=day,
        reading_count=len(ordered),
        total_consumption=round_half_away(total_kwh, 2),
        total_consumption_mwh=round_half_away(kwh_to_mwh(total_kwh), 3),
        average_power=round_half_away(avg_power, 2),
        peak_power=round_half_away(peak_power, 2),
        min_power=round_half_away(min_power, 2),
        moving_average=round_series(moving, 2),
        estimated_cost=round_half_away(estimated_cost, 2),
        cost_breakdown={tier: round_half_away(cost, 2) for tier, cost in costs.items()},
        avg_voltage=round_half_away(avg_voltage, 2),
        avg_current=round_half_away(avg_current, 2),
        voltage_stddev=round_half_away(voltage_stddev, 3),
        power_factor=round_half_away(power_factor, 3),
        peak_hour=derive_peak_hour(buckets),
        hourly_data=buckets,
        created_at=created_at or datetime.now(tz=UTC),
    )


# ── Recommendations ───────────────────────────────────────────────────────────

def generate_recommendations(analytics: DailyAnalytics) -> list[Recommendation]:
    """Independent threshold rules, always evaluated in the same order."""
    recs: list[Recommendation] = []

    if analytics.average_power > HIGH_AVERAGE_POWER_KW:
        recs.append(Recommendation(
            priority="high",
            category="consumption",
            message="Average power is high. Consider load shifting and efficiency measures.",
        ))

    # pf == 0 means apparent power was unavailable, not a bad load
    if 0 < analytics.power_factor < LOW_POWER_FACTOR:
        recs.append(Recommendation(
            priority="medium",
            category="efficiency",
            message=f"Low power factor ({analytics.power_factor:.3f}). Evaluate correction equipment.",
        ))

    if analytics.voltage_stddev > HIGH_VOLTAGE_STDDEV:
        recs.append(Recommendation(
            priority="high",
            category="quality",
            message="High voltage variability detected. Inspect electrical infrastructure.",
        ))

    if analytics.peak_hour:
        start, end = BUSINESS_HOURS
        if start <= int(analytics.peak_hour) <= end:
            recs.append(Recommendation(
                priority="low",
                category="optimization",
                message=f"Peak at {analytics.peak_hour}:00. Shift non-critical loads to off-peak hours.",
            ))

    return recs

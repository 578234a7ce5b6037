"""
grid_analytics/analytics/converter.py
─────────────────────────────────────
Energy unit conversions and tiered cost computation.

Tier labels ride along for breakdown labelling only; the arithmetic is a
flat rate applied to whatever share of consumption the caller assigned to
the tier.
"""
from __future__ import annotations

import logging
import math

from config.tariffs import DEFAULT_PEAK_SHARE, DEFAULT_RATE_PER_KWH, OFFPEAK_TIER, PEAK_TIER
from grid_analytics.errors import InvalidInputError

logger = logging.getLogger(__name__)


def kwh_to_mwh(kwh: float) -> float:
    return kwh / 1000.0


def mwh_to_kwh(mwh: float) -> float:
    return mwh * 1000.0


def calculate_cost(kwh: float, rate_per_kwh: float, tier: str) -> float:
    cost = kwh * rate_per_kwh
    logger.debug("tier=%s kwh=%.3f rate=%.4f cost=%.4f", tier, kwh, rate_per_kwh, cost)
    return cost


def cost_breakdown(
    total_kwh: float,
    rate_per_kwh: float = DEFAULT_RATE_PER_KWH,
    peak_share: float = DEFAULT_PEAK_SHARE,
) -> dict[str, float]:
    """Split consumption into peak / off-peak shares and price each one."""
    if not 0.0 <= peak_share <= 1.0:
        raise InvalidInputError(f"peak share must be within [0, 1], got {peak_share}")
    return {
        PEAK_TIER: calculate_cost(total_kwh * peak_share, rate_per_kwh, PEAK_TIER),
        OFFPEAK_TIER: calculate_cost(total_kwh * (1.0 - peak_share), rate_per_kwh, OFFPEAK_TIER),
    }


def calculate_efficiency(apparent_power: float, real_power: float) -> float:
    """Power factor = real / apparent; 0.0 whenever the ratio is undefined."""
    if not apparent_power > 0:
        return 0.0
    ratio = real_power / apparent_power
    if not math.isfinite(ratio):
        return 0.0
    return ratio

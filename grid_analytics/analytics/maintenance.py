"""
grid_analytics/analytics/maintenance.py
───────────────────────────────────────
Predictive maintenance from an exponential failure model.

Failure risk over a horizon h for a constant annual failure rate λ:
  P(fail ≤ h) = 1 - exp(-λ · h / 1 year)

Next service is due one service interval after the last one.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta

from config.tariffs import OPERATING_HOURS_PER_DAY
from grid_analytics.analytics.statistics import round_half_away
from grid_analytics.data.models import AssetHealth, MaintenancePrediction

YEAR = timedelta(days=365)


def failure_risk(annual_rate: float, horizon: timedelta) -> float:
    """Probability of at least one failure within `horizon`."""
    return 1.0 - math.exp(-annual_rate * (horizon / YEAR))


def next_service_date(asset: AssetHealth) -> datetime:
    return asset.last_service + asset.service_interval


def estimate_hours_run(
    install_date: datetime,
    now: datetime,
    hours_per_day: float = OPERATING_HOURS_PER_DAY,
) -> float:
    """Operating hours since install, assuming a fixed daily duty cycle."""
    days = max((now - install_date) / timedelta(days=1), 0.0)
    return days * hours_per_day


def maintenance_recommendation(risk_30_days: float, health: float) -> str:
    if risk_30_days > 0.5 or health < 60:
        return "URGENT: Schedule immediate maintenance inspection"
    if risk_30_days > 0.3 or health < 75:
        return "Schedule maintenance within next 30 days"
    if risk_30_days > 0.15 or health < 85:
        return "Plan maintenance within next 90 days"
    return "Equipment operating normally"


def predict_maintenance(
    equipment_id: str,
    asset: AssetHealth,
    health_score: float,
    now: datetime,
) -> MaintenancePrediction:
    """Risk at 30 / 90 days (as percentages), next service, and advice."""
    risk_30 = failure_risk(asset.failure_rate_per_year, timedelta(days=30))
    risk_90 = failure_risk(asset.failure_rate_per_year, timedelta(days=90))
    next_service = next_service_date(asset)

    return MaintenancePrediction(
        equipment_id=equipment_id,
        current_health=health_score,
        failure_risk_30_days=round_half_away(risk_30 * 100.0, 2),
        failure_risk_90_days=round_half_away(risk_90 * 100.0, 2),
        next_service_date=next_service,
        days_until_service=int((next_service - now) / timedelta(days=1)),
        recommendation=maintenance_recommendation(risk_30, health_score),
    )

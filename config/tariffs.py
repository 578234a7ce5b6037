"""
config/tariffs.py
─────────────────
Tariff defaults and daily-report recommendation thresholds.

Cost model: flat rate per kWh, with the day's consumption split between a
peak and an off-peak tier by a fixed share decided before pricing.
"""

DEFAULT_RATE_PER_KWH = 0.20   # currency units / kWh
DEFAULT_PEAK_SHARE = 0.4      # 40% peak / 60% off-peak

PEAK_TIER = "peak"
OFFPEAK_TIER = "offpeak"

# ── Recommendation thresholds ─────────────────────────────────────────────────
HIGH_AVERAGE_POWER_KW = 50.0
LOW_POWER_FACTOR = 0.85
HIGH_VOLTAGE_STDDEV = 10.0
BUSINESS_HOURS = (9, 17)      # inclusive

# ── Maintenance model ─────────────────────────────────────────────────────────
DEFAULT_FAILURE_RATE_PER_YEAR = 0.3
DEFAULT_SERVICE_INTERVAL_DAYS = 365
OPERATING_HOURS_PER_DAY = 20.0
MAINTENANCE_ALERT_RISK = 0.5
MAINTENANCE_ALERT_HEALTH = 75.0

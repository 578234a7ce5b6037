"""
config/alerts.py
────────────────
Alert severity levels, alert types, and notification limits.
"""

from enum import Enum


class AnomalySeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AlertType(str, Enum):
    ANOMALY = "anomaly"
    MAINTENANCE = "maintenance"


# Severity ordering for sorting (higher = more severe)
SEVERITY_ORDER: dict[str, int] = {
    AnomalySeverity.CRITICAL: 4,
    AnomalySeverity.HIGH: 3,
    AnomalySeverity.MEDIUM: 2,
    AnomalySeverity.LOW: 1,
}

# Ratio of current power to the historical mean at which each tier starts.
SEVERITY_RATIOS: dict[str, float] = {
    AnomalySeverity.CRITICAL: 2.0,
    AnomalySeverity.HIGH: 1.5,
    AnomalySeverity.MEDIUM: 1.25,
}

# Notification subjects are truncated to this length
MAX_SUBJECT_LENGTH = 100

# Default page of alerts returned by a listing
MAX_ALERTS_DISPLAY = 100

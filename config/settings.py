"""
config/settings.py
──────────────────
Application configuration loaded from environment variables.
"""
import os
from dataclasses import dataclass


@dataclass
class Settings:
    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Database (SQLite path; ":memory:" for tests)
    DATABASE_URL: str = os.getenv("DATABASE_URL", "grid_analytics.db")

    # Facility defaults
    DEFAULT_FACILITY_ID: str = os.getenv("DEFAULT_FACILITY_ID", "facility-001")
    TIMEZONE: str = os.getenv("TIMEZONE", "UTC")

    # Anomaly detection
    HISTORICAL_HOURS: int = int(os.getenv("HISTORICAL_HOURS", "24"))
    HISTORICAL_LIMIT: int = int(os.getenv("HISTORICAL_LIMIT", "200"))
    ANOMALY_WINDOW: int = int(os.getenv("ANOMALY_WINDOW", "24"))
    ANOMALY_THRESHOLD_SIGMA: float = float(os.getenv("ANOMALY_THRESHOLD_SIGMA", "2.0"))

    # Daily analytics
    MOVING_AVERAGE_WINDOW: int = int(os.getenv("MOVING_AVERAGE_WINDOW", "12"))
    DAILY_PAGE_SIZE: int = int(os.getenv("DAILY_PAGE_SIZE", "2000"))
    MAX_PAGES: int = int(os.getenv("MAX_PAGES", "50"))

    # Reports
    REPORT_BUCKET: str = os.getenv("REPORT_BUCKET", "energy-grid-reports")

    # Simulation
    SIMULATION_SEED: int = int(os.getenv("SIMULATION_SEED", "42"))
    HISTORY_DAYS: int = int(os.getenv("HISTORY_DAYS", "7"))
    METERS_PER_FACILITY: int = int(os.getenv("METERS_PER_FACILITY", "3"))


settings = Settings()

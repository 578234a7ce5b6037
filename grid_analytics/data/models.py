"""
grid_analytics/data/models.py
─────────────────────────────
Pydantic v2 data models for meter readings, anomaly results, alerts,
daily analytics summaries, and maintenance predictions.

Readings accept both snake_case names and the camelCase wire names used by
the ingestion path and the readings table (facilityId, meterId, powerKw).
Measurements are plain floats: NaN, Inf and negative values are kept and
handled by the analytics that consume them. Datetimes are normalised to UTC.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config.alerts import AlertType, AnomalySeverity


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _as_utc_seconds(value: datetime) -> datetime:
    return _as_utc(value).replace(microsecond=0)


class Reading(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    facility_id: str = Field(alias="facilityId", min_length=1)
    meter_id: str = Field(alias="meterId", min_length=1)
    timestamp: datetime
    voltage: float
    current: float
    power_kw: float = Field(alias="powerKw")
    status: str | None = None
    temperature: float | None = None

    @field_validator("timestamp")
    @classmethod
    def _second_resolution(cls, value: datetime) -> datetime:
        return _as_utc_seconds(value)

    @property
    def unix_timestamp(self) -> int:
        return int(self.timestamp.timestamp())

    def to_record(self) -> dict[str, Any]:
        """Wire shape: camelCase keys, unix-seconds timestamp."""
        record: dict[str, Any] = {
            "facilityId": self.facility_id,
            "meterId": self.meter_id,
            "timestamp": self.unix_timestamp,
            "voltage": self.voltage,
            "current": self.current,
            "powerKw": self.power_kw,
        }
        if self.status is not None:
            record["status"] = self.status
        if self.temperature is not None:
            record["temperature"] = self.temperature
        return record


class AnomalyResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_anomaly: bool
    current_power: float
    mean: float
    std_dev: float
    threshold: float
    deviation_percent: float
    severity: AnomalySeverity
    reason: str
    spike: bool = False
    outlier: bool = False


class Alert(BaseModel):
    alert_id: str
    facility_id: str
    equipment_id: str
    timestamp: datetime
    severity: AnomalySeverity
    type: AlertType = AlertType.ANOMALY
    message: str
    acknowledged: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class HourlyBucket(BaseModel):
    model_config = ConfigDict(frozen=True)

    count: int = Field(ge=1)
    total_power: float
    avg_power: float
    max_power: float


class DailyAnalytics(BaseModel):
    model_config = ConfigDict(frozen=True)

    facility_id: str
    date: str
    reading_count: int = Field(ge=1)
    total_consumption: float
    total_consumption_mwh: float
    average_power: float
    peak_power: float
    min_power: float
    moving_average: list[float]
    estimated_cost: float
    cost_breakdown: dict[str, float]
    avg_voltage: float
    avg_current: float
    voltage_stddev: float
    power_factor: float
    peak_hour: str
    hourly_data: dict[str, HourlyBucket]
    created_at: datetime

    def to_record(self) -> dict[str, Any]:
        """Persisted shape; created_at as unix seconds."""
        record = self.model_dump(mode="json", exclude={"created_at"})
        record["created_at"] = int(self.created_at.timestamp())
        return record


class Recommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    priority: str
    category: str
    message: str


class AssetHealth(BaseModel):
    model_config = ConfigDict(frozen=True)

    hours_run: float = Field(ge=0.0)
    failure_rate_per_year: float = Field(ge=0.0)
    last_service: datetime
    service_interval: timedelta

    @field_validator("last_service")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class Equipment(BaseModel):
    equipment_id: str
    facility_id: str
    type: str = "meter"
    install_date: datetime
    last_maintenance: datetime
    health_score: float = Field(ge=0.0, le=100.0)

    @field_validator("install_date", "last_maintenance")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class MaintenancePrediction(BaseModel):
    model_config = ConfigDict(frozen=True)

    equipment_id: str
    current_health: float
    failure_risk_30_days: float = Field(ge=0.0, le=100.0)
    failure_risk_90_days: float = Field(ge=0.0, le=100.0)
    next_service_date: datetime
    days_until_service: int
    recommendation: str

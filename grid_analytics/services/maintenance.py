"""Maintenance assessment for metered equipment."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from config.alerts import AlertType, AnomalySeverity
from config.tariffs import (
    DEFAULT_FAILURE_RATE_PER_YEAR,
    DEFAULT_SERVICE_INTERVAL_DAYS,
    MAINTENANCE_ALERT_HEALTH,
    MAINTENANCE_ALERT_RISK,
)
from grid_analytics.analytics.maintenance import estimate_hours_run, predict_maintenance
from grid_analytics.data.models import AssetHealth, Equipment, MaintenancePrediction
from grid_analytics.services.alerts import AlertService

logger = logging.getLogger(__name__)


def needs_attention(prediction: MaintenancePrediction) -> bool:
    return (
        prediction.failure_risk_30_days > MAINTENANCE_ALERT_RISK * 100.0
        or prediction.current_health < MAINTENANCE_ALERT_HEALTH
    )


class MaintenanceService:
    def __init__(
        self,
        alerts: AlertService | None = None,
        failure_rate_per_year: float = DEFAULT_FAILURE_RATE_PER_YEAR,
        service_interval: timedelta = timedelta(days=DEFAULT_SERVICE_INTERVAL_DAYS),
    ) -> None:
        self.alerts = alerts
        self.failure_rate_per_year = failure_rate_per_year
        self.service_interval = service_interval

    def asset_health(self, equipment: Equipment, now: datetime) -> AssetHealth:
        return AssetHealth(
            hours_run=estimate_hours_run(equipment.install_date, now),
            failure_rate_per_year=self.failure_rate_per_year,
            last_service=equipment.last_maintenance,
            service_interval=self.service_interval,
        )

    def assess(self, equipment: Equipment, now: datetime | None = None) -> MaintenancePrediction:
        now = now or datetime.now(tz=UTC)
        asset = self.asset_health(equipment, now)
        prediction = predict_maintenance(equipment.equipment_id, asset, equipment.health_score, now)
        logger.info("Maintenance %s: health=%.1f risk30=%.2f%% next=%s",
                    equipment.equipment_id, prediction.current_health,
                    prediction.failure_risk_30_days, prediction.next_service_date.date().isoformat())

        if needs_attention(prediction) and self.alerts is not None:
            self._alert(equipment, prediction, now)
        return prediction

    def _alert(self, equipment: Equipment, prediction: MaintenancePrediction, now: datetime) -> None:
        urgent = prediction.recommendation.startswith("URGENT")
        message = (
            f"Equipment {prediction.equipment_id} requires maintenance. "
            f"Health score: {prediction.current_health:.1f}. "
            f"Next service: {prediction.next_service_date.date().isoformat()}"
        )
        self.alerts.create_alert(
            facility_id=equipment.facility_id,
            equipment_id=equipment.equipment_id,
            severity=AnomalySeverity.HIGH if urgent else AnomalySeverity.MEDIUM,
            alert_type=AlertType.MAINTENANCE,
            message=message,
            metadata=prediction.model_dump(mode="json"),
            now=now,
        )
        self.alerts.notify(f"Maintenance Required: {prediction.equipment_id}", message)

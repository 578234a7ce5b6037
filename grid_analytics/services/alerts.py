"""Alert creation, listing, acknowledgement, and notification."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import Any

from config.alerts import MAX_SUBJECT_LENGTH, SEVERITY_ORDER, AlertType, AnomalySeverity
from grid_analytics.data.collaborators import AlertStore, Notifier
from grid_analytics.data.models import Alert, AnomalyResult, Reading
from grid_analytics.errors import CollaboratorError, InvalidInputError

logger = logging.getLogger(__name__)


def new_alert_id() -> str:
    return f"alert-{uuid.uuid4().hex[:16]}"


def _subject(text: str) -> str:
    return text[:MAX_SUBJECT_LENGTH]


def anomaly_message(result: AnomalyResult) -> str:
    direction = "above" if result.deviation_percent >= 0 else "below"
    return (
        f"Abnormal power consumption: {result.current_power:.2f} kW "
        f"({abs(result.deviation_percent):.1f}% {direction} average)"
    )


def anomaly_notification(reading: Reading, result: AnomalyResult, now: datetime) -> tuple[str, str]:
    subject = _subject(f"[{result.severity.value}] Energy Grid Anomaly - {reading.facility_id}")
    body = (
        "Energy Grid Anomaly Detected\n"
        "\n"
        f"Facility: {reading.facility_id}\n"
        f"Meter: {reading.meter_id}\n"
        f"Severity: {result.severity.value}\n"
        "\n"
        f"Current Power: {result.current_power:.2f} kW\n"
        f"Average Power: {result.mean:.2f} kW\n"
        f"Deviation: {result.deviation_percent:.1f}%\n"
        "\n"
        f"Threshold: {result.threshold:.2f} kW\n"
        f"Time: {now.isoformat()}\n"
        "\n"
        f"Reason: {result.reason}\n"
        "\n"
        "Action Required: Please investigate immediately."
    )
    return subject, body


class AlertService:
    """Persists alerts through an AlertStore and announces them via a Notifier."""

    def __init__(self, store: AlertStore, notifier: Notifier | None = None) -> None:
        self.store = store
        self.notifier = notifier

    def create_alert(
        self,
        facility_id: str,
        equipment_id: str,
        severity: AnomalySeverity,
        alert_type: AlertType,
        message: str,
        metadata: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> Alert:
        alert = Alert(
            alert_id=new_alert_id(),
            facility_id=facility_id,
            equipment_id=equipment_id,
            timestamp=now or datetime.now(tz=UTC),
            severity=severity,
            type=alert_type,
            message=message,
            metadata=metadata or {},
        )
        try:
            self.store.put_alert(alert)
        except Exception as exc:
            raise CollaboratorError(
                f"failed to store alert: {exc}", facility_id=facility_id
            ) from exc
        logger.info("Stored %s %s alert %s for %s/%s",
                    severity.value, alert_type.value, alert.alert_id, facility_id, equipment_id)
        return alert

    def raise_anomaly_alert(
        self,
        reading: Reading,
        result: AnomalyResult,
        now: datetime | None = None,
    ) -> Alert:
        """Store an anomaly alert and publish it; publishing failures are only logged."""
        now = now or datetime.now(tz=UTC)
        alert = self.create_alert(
            facility_id=reading.facility_id,
            equipment_id=reading.meter_id,
            severity=result.severity,
            alert_type=AlertType.ANOMALY,
            message=anomaly_message(result),
            metadata={
                "current_power": result.current_power,
                "average_power": result.mean,
                "std_dev": result.std_dev,
                "threshold": result.threshold,
                "deviation_percent": result.deviation_percent,
                "reason": result.reason,
            },
            now=now,
        )
        self.notify(*anomaly_notification(reading, result, now))
        return alert

    def notify(self, subject: str, message: str) -> bool:
        if self.notifier is None:
            logger.debug("No notifier configured; skipping %r", subject)
            return False
        try:
            self.notifier.publish(_subject(subject), message)
        except Exception:
            # Alert is already stored
            logger.exception("Failed to publish notification %r", subject)
            return False
        return True

    def send_batch(self, alerts: list[Alert]) -> bool:
        """One digest notification for several alerts, most severe first."""
        if not alerts:
            return False
        ordered = sorted(alerts, key=lambda a: SEVERITY_ORDER[a.severity], reverse=True)
        lines = [f"{i}. [{a.severity.value}] {a.message}" for i, a in enumerate(ordered, start=1)]
        return self.notify(f"Energy Grid: {len(alerts)} Alerts", "\n".join(lines))

    def list_alerts(
        self,
        facility_id: str,
        severity: AnomalySeverity | None = None,
    ) -> list[Alert]:
        return self.store.get_alerts(facility_id, severity)

    def acknowledge(self, alert_id: str) -> None:
        if not self.store.acknowledge_alert(alert_id):
            raise InvalidInputError(f"unknown alert {alert_id!r}")
        logger.info("Acknowledged alert %s", alert_id)

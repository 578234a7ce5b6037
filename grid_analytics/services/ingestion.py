"""
grid_analytics/services/ingestion.py
────────────────────────────────────
Inbound readings and the background anomaly worker.

Ingestion stores the reading and hands it to the worker queue without
waiting. The worker evaluates each reading against its own snapshot of
the trailing window and reports results only through alerts.
"""
from __future__ import annotations

import json
import logging
import queue
import threading
from datetime import timedelta
from typing import Any

from pydantic import ValidationError

from config.settings import Settings, settings
from grid_analytics.analytics.anomaly import detect_anomaly
from grid_analytics.data.collaborators import ReadingStore
from grid_analytics.data.history import fetch_historical_window
from grid_analytics.data.models import AnomalyResult, Reading
from grid_analytics.errors import InvalidInputError
from grid_analytics.services.alerts import AlertService

logger = logging.getLogger(__name__)

_STOP = object()


class AnomalyWorker:
    """Single background thread draining a queue of readings."""

    def __init__(
        self,
        store: ReadingStore,
        alerts: AlertService,
        config: Settings = settings,
    ) -> None:
        self.store = store
        self.alerts = alerts
        self.config = config
        self._queue: queue.Queue = queue.Queue()
        self._thread: threading.Thread | None = None

    def evaluate(self, reading: Reading) -> AnomalyResult:
        """Judge one reading against the readings strictly before it."""
        window = fetch_historical_window(
            self.store,
            reading.facility_id,
            reading.timestamp - timedelta(seconds=1),
            meter_id=reading.meter_id,
            hours=self.config.HISTORICAL_HOURS,
            limit=self.config.HISTORICAL_LIMIT,
            max_pages=self.config.MAX_PAGES,
        )
        if window.truncated:
            logger.warning("Historical window for %s/%s truncated after %d pages",
                           reading.facility_id, reading.meter_id, window.pages)

        result = detect_anomaly(
            reading,
            window.readings,
            window=self.config.ANOMALY_WINDOW,
            sigma=self.config.ANOMALY_THRESHOLD_SIGMA,
        )
        if result.is_anomaly:
            logger.info("Anomaly %s/%s at %s: %.3f kW (%s) %s",
                        reading.facility_id, reading.meter_id, reading.timestamp.isoformat(),
                        result.current_power, result.severity.value, result.reason)
            self.alerts.raise_anomaly_alert(reading, result)
        return result

    # ── Queue lifecycle ───────────────────────────────────────────────────────

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._run, name="anomaly-worker", daemon=True)
        self._thread.start()

    def submit(self, reading: Reading) -> None:
        self._queue.put(reading)

    def join(self) -> None:
        """Block until every submitted reading has been evaluated."""
        self._queue.join()

    def stop(self, timeout: float = 5.0) -> None:
        if self._thread is None:
            return
        self._queue.put(_STOP)
        self._thread.join(timeout)
        self._thread = None

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self.evaluate(item)
            except Exception:
                # One bad reading must not stop the worker
                logger.exception("Anomaly evaluation failed for %s/%s",
                                 getattr(item, "facility_id", "?"), getattr(item, "meter_id", "?"))
            finally:
                self._queue.task_done()


class ReadingIngestor:
    """Entry point for the inbound push of raw readings."""

    def __init__(
        self,
        store: ReadingStore,
        worker: AnomalyWorker | None = None,
        config: Settings = settings,
    ) -> None:
        self.store = store
        self.worker = worker
        self.config = config

    def ingest(self, reading: Reading) -> None:
        self.store.put_readings([reading])
        if self.worker is not None:
            self.worker.submit(reading)

    def ingest_payload(self, payload: dict[str, Any]) -> Reading:
        """Validate a wire payload (camelCase or snake_case keys) and ingest it."""
        try:
            reading = Reading.model_validate(payload)
        except ValidationError as exc:
            raise InvalidInputError(f"invalid reading payload: {exc.error_count()} error(s): {exc}") from exc
        if reading.unix_timestamp == 0:
            raise InvalidInputError("invalid reading payload: missing timestamp",
                                    facility_id=reading.facility_id)
        self.ingest(reading)
        return reading

    def ingest_message(self, topic: str, message: bytes | str) -> Reading:
        """Transport messages may omit the facility; the default facility is assumed."""
        try:
            payload = json.loads(message)
        except json.JSONDecodeError as exc:
            raise InvalidInputError(f"undecodable message on {topic}: {exc}") from exc
        if not isinstance(payload, dict):
            raise InvalidInputError(f"message on {topic} is not a JSON object")
        if not payload.get("facilityId") and not payload.get("facility_id"):
            payload["facilityId"] = self.config.DEFAULT_FACILITY_ID
        logger.debug("Message on %s for %s", topic, payload.get("meterId") or payload.get("meter_id"))
        return self.ingest_payload(payload)

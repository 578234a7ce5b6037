"""
tests/test_services.py
──────────────────────
Tests for the alert service, daily analytics job and ingestion path.
"""
import json
from datetime import timedelta

import pytest

from config.alerts import AlertType, AnomalySeverity
from grid_analytics.analytics.anomaly import detect_anomaly
from grid_analytics.data.collaborators import InMemoryBlobStore
from grid_analytics.errors import CollaboratorError, InvalidInputError
from grid_analytics.services.alerts import AlertService, anomaly_message
from grid_analytics.services.analytics import NO_DATA_MESSAGE, DailyAnalyticsJob
from grid_analytics.services.ingestion import AnomalyWorker, ReadingIngestor


class BrokenNotifier:
    def publish(self, subject, message):
        raise ConnectionError("topic unavailable")


class BrokenStore:
    def put_alert(self, alert):
        raise OSError("disk full")

    def query_readings(self, *args, **kwargs):
        raise OSError("table offline")

    def put(self, *args, **kwargs):
        raise OSError("bucket offline")


@pytest.fixture
def spike_result(steady_history, make_reading, now):
    reading = make_reading(200.0, now)
    return reading, detect_anomaly(reading, steady_history)


class TestAlertService:
    def test_anomaly_alert_stored_and_published(self, store, notifier, spike_result, now):
        reading, result = spike_result
        alert = AlertService(store, notifier).raise_anomaly_alert(reading, result, now=now)

        assert alert.alert_id.startswith("alert-")
        stored = store.get_alerts("facility-001")
        assert [a.alert_id for a in stored] == [alert.alert_id]
        assert stored[0].severity == AnomalySeverity.CRITICAL
        assert stored[0].metadata["current_power"] == 200.0

        subject, body = notifier.messages[0]
        assert subject == "[critical] Energy Grid Anomaly - facility-001"
        assert "Meter: meter-001" in body

    def test_message_direction(self, make_reading, steady_history, now):
        result = detect_anomaly(make_reading(5.0, now), steady_history)
        assert "below average" in anomaly_message(result)

    def test_publish_failure_keeps_alert(self, store, spike_result, now):
        reading, result = spike_result
        AlertService(store, BrokenNotifier()).raise_anomaly_alert(reading, result, now=now)
        assert len(store.get_alerts("facility-001")) == 1

    def test_store_failure_raises_collaborator_error(self, spike_result, now):
        reading, result = spike_result
        with pytest.raises(CollaboratorError):
            AlertService(BrokenStore()).raise_anomaly_alert(reading, result, now=now)

    def test_subject_truncated(self, store, notifier):
        AlertService(store, notifier).notify("x" * 250, "body")
        assert len(notifier.messages[0][0]) == 100

    def test_list_with_severity_and_acknowledge(self, store, notifier, now):
        service = AlertService(store, notifier)
        low = service.create_alert("facility-001", "meter-001", AnomalySeverity.LOW, AlertType.ANOMALY, "low", now=now)
        service.create_alert("facility-001", "meter-002", AnomalySeverity.HIGH, AlertType.ANOMALY, "high", now=now)

        assert [a.message for a in service.list_alerts("facility-001", AnomalySeverity.LOW)] == ["low"]
        service.acknowledge(low.alert_id)
        assert store.count_active_alerts("facility-001") == 1

    def test_acknowledge_unknown_raises(self, store):
        with pytest.raises(InvalidInputError):
            AlertService(store).acknowledge("alert-missing")

    def test_batch_most_severe_first(self, store, notifier, now):
        service = AlertService(store, notifier)
        alerts = [
            service.create_alert("facility-001", "m1", AnomalySeverity.LOW, AlertType.ANOMALY, "first", now=now),
            service.create_alert("facility-001", "m2", AnomalySeverity.CRITICAL, AlertType.ANOMALY, "second", now=now),
        ]
        assert service.send_batch(alerts)
        subject, body = notifier.messages[0]
        assert subject == "Energy Grid: 2 Alerts"
        assert body.splitlines() == ["1. [critical] second", "2. [low] first"]

    def test_empty_batch(self, store, notifier):
        assert not AlertService(store, notifier).send_batch([])
        assert notifier.messages == []


class TestDailyAnalyticsJob:
    @pytest.fixture
    def yesterday_readings(self, store, make_reading, now):
        day_start = (now - timedelta(days=1)).replace(hour=0)
        store.put_readings([make_reading(10.0 + h, day_start + timedelta(hours=h)) for h in range(24)])
        return store

    def test_no_data(self, store, now):
        result = DailyAnalyticsJob(store).run("facility-001", "2024-05-01", now=now)
        assert result.status_code == 200
        assert result.body == {"message": NO_DATA_MESSAGE, "facility_id": "facility-001", "date": "2024-05-01"}

    def test_success_defaults_to_yesterday(self, yesterday_readings, now):
        blobs = InMemoryBlobStore("reports-bucket")
        result = DailyAnalyticsJob(yesterday_readings, yesterday_readings, blobs).run("facility-001", now=now)

        assert result.ok
        assert result.body["date"] == "2024-05-31"
        assert result.body["analytics"]["reading_count"] == 24
        assert result.body["analytics"]["peak_hour"] == "23"
        assert result.body["report_url"] == "memory://reports-bucket/reports/facility-001/2024-05-31-analytics.json"

        stored = yesterday_readings.get_daily_analytics("facility-001", "2024-05-31")
        assert stored is not None and stored.reading_count == 24

        blob = blobs.blobs["reports/facility-001/2024-05-31-analytics.json"]
        report = json.loads(blob.body)
        assert report["title"] == "Daily Energy Report - facility-001"
        assert report["summary"]["peak_hour"] == "23:00"
        assert blob.content_type == "application/json"
        assert blob.metadata["report-date"] == "2024-05-31"

    def test_rerun_is_idempotent(self, yesterday_readings, now):
        job = DailyAnalyticsJob(yesterday_readings, yesterday_readings)
        first = job.run("facility-001", "2024-05-31", now=now).body["analytics"]
        second = job.run("facility-001", "2024-05-31", now=now).body["analytics"]
        assert first == second

    def test_bad_date(self, store, now):
        result = DailyAnalyticsJob(store).run("facility-001", "31-05-2024", now=now)
        assert result.status_code == 400
        assert result.body["facility_id"] == "facility-001"
        assert "error" in result.body

    def test_reading_store_failure(self, now):
        result = DailyAnalyticsJob(BrokenStore()).run("facility-001", "2024-05-31", now=now)
        assert result.status_code == 500
        assert result.body["date"] == "2024-05-31"

    def test_report_failure_is_not_fatal(self, yesterday_readings, now):
        result = DailyAnalyticsJob(yesterday_readings, blobs=BrokenStore()).run("facility-001", now=now)
        assert result.ok
        assert result.body["report_url"] == ""


class TestAnomalyWorker:
    def test_evaluate_raises_alert_for_spike(self, store, notifier, steady_history, make_reading, now):
        store.put_readings(steady_history)
        worker = AnomalyWorker(store, AlertService(store, notifier))
        result = worker.evaluate(make_reading(200.0, now))
        assert result.is_anomaly
        assert len(store.get_alerts("facility-001")) == 1

    def test_evaluate_ignores_other_meters(self, store, notifier, steady_history, make_reading, now):
        store.put_readings(steady_history)
        store.put_readings([make_reading(900.0, now - timedelta(minutes=30), meter_id="meter-002")])
        worker = AnomalyWorker(store, AlertService(store, notifier))
        result = worker.evaluate(make_reading(10.0, now))
        assert not result.is_anomaly
        assert store.get_alerts("facility-001") == []

    def test_background_processing(self, store, notifier, steady_history, make_reading, now):
        store.put_readings(steady_history)
        worker = AnomalyWorker(store, AlertService(store, notifier))
        ingestor = ReadingIngestor(store, worker)

        worker.start()
        try:
            worker.submit(None)  # a bad item must not stop the worker
            ingestor.ingest(make_reading(200.0, now))
            worker.join()
        finally:
            worker.stop()

        assert store.count_readings("facility-001") == 25
        assert len(store.get_alerts("facility-001")) == 1


class TestReadingIngestor:
    def payload(self, **overrides):
        body = {
            "facilityId": "facility-001",
            "meterId": "meter-001",
            "timestamp": 1717243200,
            "voltage": 231.0,
            "current": 9.5,
            "powerKw": 2.2,
        }
        body.update(overrides)
        return body

    def test_payload_stored(self, store):
        reading = ReadingIngestor(store).ingest_payload(self.payload())
        assert reading.meter_id == "meter-001"
        assert store.count_readings("facility-001") == 1

    def test_missing_field(self, store):
        body = self.payload()
        del body["powerKw"]
        with pytest.raises(InvalidInputError):
            ReadingIngestor(store).ingest_payload(body)

    def test_zero_timestamp(self, store):
        with pytest.raises(InvalidInputError):
            ReadingIngestor(store).ingest_payload(self.payload(timestamp=0))

    def test_message_defaults_facility(self, store):
        body = self.payload()
        del body["facilityId"]
        reading = ReadingIngestor(store).ingest_message("grid/meters/meter-001", json.dumps(body).encode())
        assert reading.facility_id == "facility-001"

    @pytest.mark.parametrize("message", [b"not json", b"[1, 2]"])
    def test_bad_message(self, store, message):
        with pytest.raises(InvalidInputError):
            ReadingIngestor(store).ingest_message("grid/meters/x", message)

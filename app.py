"""
app.py
──────
Energy Grid Analytics: demo runner.

Startup sequence:
  1. Open the SQLite store and seed it with simulated history
  2. Start the anomaly worker and push a handful of live readings through
     the ingestion path (one of them a surge)
  3. Run the daily analytics job for yesterday and publish the report
  4. Assess maintenance for each meter
"""
import logging
from datetime import UTC, datetime, timedelta

import numpy as np

from config.settings import settings
from grid_analytics.data.collaborators import InMemoryBlobStore, LoggingNotifier
from grid_analytics.data.models import Equipment
from grid_analytics.data.simulator import SpikeEvent, generate_history, generate_readings, meter_ids
from grid_analytics.data.store import SQLiteStore
from grid_analytics.logs import configure_logging
from grid_analytics.services.alerts import AlertService
from grid_analytics.services.analytics import DailyAnalyticsJob
from grid_analytics.services.ingestion import AnomalyWorker, ReadingIngestor
from grid_analytics.services.maintenance import MaintenanceService

logger = logging.getLogger("grid_analytics.app")


def main() -> None:
    configure_logging()
    now = datetime.now(tz=UTC).replace(minute=0, second=0, microsecond=0)
    facility_id = settings.DEFAULT_FACILITY_ID
    meters = meter_ids(settings.METERS_PER_FACILITY)

    # ── 1. Seed ───────────────────────────────────────────────────────────────
    store = SQLiteStore(settings.DATABASE_URL)
    if store.count_readings(facility_id) == 0:
        logger.info("Seeding %d days of simulated readings for %s", settings.HISTORY_DAYS, facility_id)
        store.put_readings(generate_history(facility_id, end=now - timedelta(hours=1)))
    logger.info("Store ready: %d readings", store.count_readings(facility_id))

    # ── 2. Live readings ──────────────────────────────────────────────────────
    alerts = AlertService(store, LoggingNotifier())
    worker = AnomalyWorker(store, alerts)
    ingestor = ReadingIngestor(store, worker)

    worker.start()
    live = generate_readings(
        facility_id,
        meters,
        start=now,
        hours=1,
        rng=np.random.default_rng(settings.SIMULATION_SEED + 1),
        interval_minutes=15,
        spikes=[SpikeEvent(meter_id=meters[0], at=now + timedelta(minutes=30), multiplier=3.5)],
    )
    for reading in live:
        ingestor.ingest(reading)
    worker.join()
    worker.stop()
    logger.info("Active alerts for %s: %d", facility_id, store.count_active_alerts(facility_id))

    # ── 3. Daily report ───────────────────────────────────────────────────────
    job = DailyAnalyticsJob(store, store, InMemoryBlobStore(settings.REPORT_BUCKET))
    result = job.run(facility_id, now=now)
    logger.info("Daily job %d: %s %s", result.status_code,
                result.body.get("message") or result.body.get("error"),
                result.body.get("report_url", ""))

    # ── 4. Maintenance ────────────────────────────────────────────────────────
    maintenance = MaintenanceService(alerts)
    for i, meter in enumerate(meters):
        maintenance.assess(
            Equipment(
                equipment_id=meter,
                facility_id=facility_id,
                install_date=now - timedelta(days=900 + 200 * i),
                last_maintenance=now - timedelta(days=120 + 150 * i),
                health_score=92.0 - 12.0 * i,
            ),
            now=now,
        )

    store.close()


if __name__ == "__main__":
    main()

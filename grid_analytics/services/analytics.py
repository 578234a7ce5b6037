"""Daily analytics job: fetch a day of readings, aggregate, store, report."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from config.settings import Settings, settings
from grid_analytics.analytics.aggregator import aggregate_daily, generate_recommendations, parse_date
from grid_analytics.data.collaborators import AnalyticsStore, BlobStore, ReadingStore
from grid_analytics.data.history import fetch_day_readings
from grid_analytics.data.models import DailyAnalytics, Recommendation
from grid_analytics.errors import AnalyticsError, CollaboratorError
from grid_analytics.services.reports import publish_report

logger = logging.getLogger(__name__)

NO_DATA_MESSAGE = "No data to process"


@dataclass(frozen=True)
class JobResult:
    status_code: int
    body: dict[str, Any]
    truncated: bool = False

    @property
    def ok(self) -> bool:
        return self.status_code == 200


class DailyAnalyticsJob:
    """
    One run per (facility, date). Reruns overwrite the stored summary with
    an identical record, so duplicate runs are harmless.
    """

    def __init__(
        self,
        readings: ReadingStore,
        analytics: AnalyticsStore | None = None,
        blobs: BlobStore | None = None,
        config: Settings = settings,
    ) -> None:
        self.readings = readings
        self.analytics = analytics
        self.blobs = blobs
        self.config = config

    def default_date(self, now: datetime) -> str:
        local = now.astimezone(ZoneInfo(self.config.TIMEZONE))
        return (local - timedelta(days=1)).date().isoformat()

    def run(
        self,
        facility_id: str | None = None,
        date: str | None = None,
        now: datetime | None = None,
    ) -> JobResult:
        now = now or datetime.now(tz=UTC)
        facility_id = facility_id or self.config.DEFAULT_FACILITY_ID

        try:
            day = parse_date(date) if date else self.default_date(now)
        except AnalyticsError as exc:
            exc.facility_id = facility_id
            return JobResult(400, exc.to_dict())

        logger.info("Start daily aggregation: facility=%s date=%s", facility_id, day)

        try:
            window = fetch_day_readings(
                self.readings,
                facility_id,
                day,
                tz=self.config.TIMEZONE,
                page_size=self.config.DAILY_PAGE_SIZE,
                max_pages=self.config.MAX_PAGES,
            )
        except Exception as exc:
            logger.exception("Reading query failed for %s on %s", facility_id, day)
            err = CollaboratorError(f"failed to get readings: {exc}", facility_id=facility_id, date=day)
            return JobResult(500, err.to_dict())

        if window.truncated:
            logger.warning("Pagination stopped at %d pages (%d readings) for %s on %s",
                           window.pages, len(window), facility_id, day)

        if not window.readings:
            return JobResult(200, {"message": NO_DATA_MESSAGE, "facility_id": facility_id, "date": day})

        try:
            analytics = aggregate_daily(
                window.readings,
                day,
                facility_id=facility_id,
                moving_average_window=self.config.MOVING_AVERAGE_WINDOW,
                tz=self.config.TIMEZONE,
                created_at=now,
            )
        except AnalyticsError as exc:
            exc.facility_id, exc.date = facility_id, day
            return JobResult(500, exc.to_dict(), truncated=window.truncated)

        recommendations = generate_recommendations(analytics)
        self._store_summary(analytics)
        report_url = self._publish(facility_id, analytics, recommendations, now)

        return JobResult(
            200,
            {
                "message": "Analytics processed successfully",
                "facility_id": facility_id,
                "date": day,
                "analytics": analytics.to_record(),
                "recommendations": [r.model_dump() for r in recommendations],
                "report_url": report_url,
            },
            truncated=window.truncated,
        )

    # Storage and reporting failures are logged; the run still returns the analytics.

    def _store_summary(self, analytics: DailyAnalytics) -> None:
        if self.analytics is None:
            return
        try:
            self.analytics.put_daily_analytics(analytics)
        except Exception:
            logger.warning("Storing summary for %s on %s failed",
                           analytics.facility_id, analytics.date, exc_info=True)

    def _publish(
        self,
        facility_id: str,
        analytics: DailyAnalytics,
        recommendations: list[Recommendation],
        now: datetime,
    ) -> str:
        if self.blobs is None:
            return ""
        try:
            url = publish_report(self.blobs, facility_id, analytics, recommendations, now)
        except Exception:
            logger.warning("Report upload for %s on %s failed", facility_id, analytics.date, exc_info=True)
            return ""
        logger.info("Report for %s on %s published at %s", facility_id, analytics.date, url)
        return url

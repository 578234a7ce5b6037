"""
grid_analytics/services/reports.py
──────────────────────────────────
Daily report document and its publication to a blob store.

Report JSON:
  title, date, generatedAt,
  summary{total_consumption, average_power, peak_power, peak_hour,
          power_factor, estimated_cost, reading_count},
  hourly_breakdown{"HH": bucket}, recommendations[]
"""
from __future__ import annotations

import json
from datetime import datetime
from urllib.parse import quote

from grid_analytics.data.collaborators import BlobStore
from grid_analytics.data.models import DailyAnalytics, Recommendation


def report_key(facility_id: str, date: str) -> str:
    return f"reports/{quote(facility_id, safe='')}/{date}-analytics.json"


def build_report(
    facility_id: str,
    analytics: DailyAnalytics,
    recommendations: list[Recommendation],
    generated_at: datetime,
) -> dict:
    return {
        "title": f"Daily Energy Report - {facility_id}",
        "date": analytics.date,
        "generatedAt": generated_at.isoformat(),
        "summary": {
            "total_consumption": f"{analytics.total_consumption:.2f} kWh",
            "average_power": f"{analytics.average_power:.2f} kW",
            "peak_power": f"{analytics.peak_power:.2f} kW",
            "peak_hour": f"{analytics.peak_hour}:00",
            "power_factor": analytics.power_factor,
            "estimated_cost": analytics.estimated_cost,
            "reading_count": analytics.reading_count,
        },
        "hourly_breakdown": {h: b.model_dump() for h, b in analytics.hourly_data.items()},
        "recommendations": [r.model_dump() for r in recommendations],
    }


def publish_report(
    blobs: BlobStore,
    facility_id: str,
    analytics: DailyAnalytics,
    recommendations: list[Recommendation],
    generated_at: datetime,
) -> str:
    """Upload the report JSON; the blob store's URL is returned unchanged."""
    report = build_report(facility_id, analytics, recommendations, generated_at)
    body = json.dumps(report, indent=2).encode("utf-8")
    return blobs.put(
        report_key(facility_id, analytics.date),
        body,
        "application/json",
        metadata={
            "facility-id": facility_id,
            "report-date": analytics.date,
            "generated-at": generated_at.isoformat(),
        },
    )

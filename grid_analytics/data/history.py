"""
grid_analytics/data/history.py
──────────────────────────────
Fetching bounded windows of readings from a ReadingStore.

  fetch_historical_window()  trailing baseline for anomaly detection:
                             newest pages first (so the count cap keeps the
                             most recent readings), returned ascending
  fetch_day_readings()       every reading of one local day, ascending

Both stop after `max_pages` pages; the window is then flagged `truncated`
and the caller decides how loudly to report it.
"""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo

from grid_analytics.data.collaborators import ReadingStore
from grid_analytics.data.models import Reading

DEFAULT_HOURS = 24
DEFAULT_LIMIT = 200
DEFAULT_MAX_PAGES = 50


@dataclass(frozen=True)
class HistoricalWindow:
    facility_id: str
    start: datetime
    end: datetime
    readings: list[Reading]
    meter_id: str | None = None
    truncated: bool = False
    pages: int = 0

    def __len__(self) -> int:
        return len(self.readings)


def ensure_ascending(readings: Sequence[Reading]) -> list[Reading]:
    """Reverse a newest-first sequence; leave ascending input untouched."""
    items = list(readings)
    if len(items) > 1 and items[0].timestamp > items[-1].timestamp:
        items.reverse()
    return items


def fetch_historical_window(
    store: ReadingStore,
    facility_id: str,
    end: datetime,
    *,
    meter_id: str | None = None,
    hours: int = DEFAULT_HOURS,
    limit: int = DEFAULT_LIMIT,
    page_size: int | None = None,
    max_pages: int = DEFAULT_MAX_PAGES,
) -> HistoricalWindow:
    """Up to `limit` most recent readings in [end - hours, end], ascending."""
    start = end - timedelta(hours=hours)
    page_size = page_size or limit

    collected: list[Reading] = []
    token: str | None = None
    pages = 0
    truncated = False

    while len(collected) < limit:
        page = store.query_readings(
            facility_id,
            start,
            end,
            meter_id=meter_id,
            limit=min(page_size, limit - len(collected)),
            page_token=token,
            descending=True,
        )
        pages += 1
        collected.extend(page.readings)
        token = page.next_token
        if not token:
            break
        if pages >= max_pages:
            truncated = True
            break

    return HistoricalWindow(
        facility_id=facility_id,
        start=start,
        end=end,
        readings=ensure_ascending(collected),
        meter_id=meter_id,
        truncated=truncated,
        pages=pages,
    )


def day_bounds(day: str, tz: str = "UTC") -> tuple[datetime, datetime]:
    """First and last second of a local calendar day."""
    start = datetime.combine(datetime.strptime(day, "%Y-%m-%d").date(), time.min, tzinfo=ZoneInfo(tz))
    end = start + timedelta(days=1) - timedelta(seconds=1)
    return start, end


def fetch_day_readings(
    store: ReadingStore,
    facility_id: str,
    day: str,
    *,
    tz: str = "UTC",
    page_size: int = 2000,
    max_pages: int = DEFAULT_MAX_PAGES,
) -> HistoricalWindow:
    start, end = day_bounds(day, tz)

    collected: list[Reading] = []
    token: str | None = None
    pages = 0
    truncated = False

    while True:
        page = store.query_readings(
            facility_id,
            start,
            end,
            limit=page_size,
            page_token=token,
        )
        pages += 1
        collected.extend(page.readings)
        token = page.next_token
        if not token:
            break
        if pages >= max_pages:
            truncated = True
            break

    return HistoricalWindow(
        facility_id=facility_id,
        start=start,
        end=end,
        readings=ensure_ascending(collected),
        truncated=truncated,
        pages=pages,
    )

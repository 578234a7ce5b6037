"""
grid_analytics/data/collaborators.py
────────────────────────────────────
Interfaces for the I/O collaborators the analytics core is handed, plus
small local implementations.

  ReadingStore    key-range queryable readings (facility + time range, paged)
  AlertStore      durable alerts; acknowledge is the only mutation
  AnalyticsStore  one DailyAnalytics per (facility, date), overwritten on rerun
  Notifier        publish a subject + text body
  BlobStore       put a blob, get back a retrieval URL

Collaborators are always constructed by the caller and passed in; nothing
in the core reaches for a module-level client.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol
from urllib.parse import quote

from config.alerts import AnomalySeverity
from grid_analytics.data.models import Alert, DailyAnalytics, Reading

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReadingPage:
    readings: list[Reading]
    next_token: str | None = None


class ReadingStore(Protocol):
    def put_readings(self, readings: list[Reading]) -> None: ...

    def query_readings(
        self,
        facility_id: str,
        start: datetime,
        end: datetime,
        *,
        meter_id: str | None = None,
        limit: int = 200,
        page_token: str | None = None,
        descending: bool = False,
    ) -> ReadingPage: ...


class AlertStore(Protocol):
    def put_alert(self, alert: Alert) -> None: ...

    def get_alerts(
        self, facility_id: str, severity: AnomalySeverity | None = None
    ) -> list[Alert]: ...

    def acknowledge_alert(self, alert_id: str) -> bool: ...


class AnalyticsStore(Protocol):
    def put_daily_analytics(self, analytics: DailyAnalytics) -> None: ...

    def get_daily_analytics(self, facility_id: str, date: str) -> DailyAnalytics | None: ...


class Notifier(Protocol):
    def publish(self, subject: str, message: str) -> None: ...


class BlobStore(Protocol):
    def put(
        self,
        key: str,
        body: bytes,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> str: ...


# ── Local implementations ─────────────────────────────────────────────────────

@dataclass
class StoredBlob:
    body: bytes
    content_type: str
    metadata: dict[str, str] = field(default_factory=dict)


class InMemoryBlobStore:
    """Keeps blobs in a dict; URLs look like memory://<bucket>/<key>."""

    def __init__(self, bucket: str) -> None:
        self.bucket = bucket
        self.blobs: dict[str, StoredBlob] = {}
        self._lock = threading.Lock()

    def put(
        self,
        key: str,
        body: bytes,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> str:
        with self._lock:
            self.blobs[key] = StoredBlob(body=body, content_type=content_type, metadata=dict(metadata or {}))
        return f"memory://{self.bucket}/{quote(key)}"


class LoggingNotifier:
    """Writes notifications to the log instead of a message topic."""

    def publish(self, subject: str, message: str) -> None:
        logger.info("NOTIFY %s\n%s", subject, message)


class RecordingNotifier:
    """Collects (subject, message) pairs; handy for tests and dry runs."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def publish(self, subject: str, message: str) -> None:
        with self._lock:
            self.messages.append((subject, message))

"""
grid_analytics/data/store.py
────────────────────────────
SQLite implementation of the reading, alert and daily-analytics stores.

Provides:
  - put_readings()          : Bulk insert Reading rows
  - query_readings()        : Facility + time-range query, keyset-paginated
  - put_alert()             : Insert an Alert
  - get_alerts()            : Alerts for a facility, optional severity filter
  - acknowledge_alert()     : Flip the acknowledged flag
  - put_daily_analytics()   : Upsert one summary per (facility, date)
  - get_daily_analytics()   : Fetch a stored summary

Thread safety: uses check_same_thread=False + a per-store lock.
"""
from __future__ import annotations

import json
import sqlite3
import threading
from datetime import datetime

import pandas as pd

from config.alerts import MAX_ALERTS_DISPLAY, AnomalySeverity
from grid_analytics.data.collaborators import ReadingPage
from grid_analytics.data.models import Alert, DailyAnalytics, Reading
from grid_analytics.errors import InvalidInputError

# ── Schema ────────────────────────────────────────────────────────────────────

_CREATE_READINGS = """
CREATE TABLE IF NOT EXISTS readings (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    facility_id  TEXT NOT NULL,
    meter_id     TEXT NOT NULL,
    timestamp    INTEGER NOT NULL,
    voltage      REAL,
    current      REAL,
    power_kw     REAL,
    status       TEXT,
    temperature  REAL
);
"""

_CREATE_ALERTS = """
CREATE TABLE IF NOT EXISTS alerts (
    alert_id      TEXT PRIMARY KEY,
    facility_id   TEXT NOT NULL,
    equipment_id  TEXT NOT NULL,
    timestamp     TEXT NOT NULL,
    severity      TEXT NOT NULL,
    type          TEXT NOT NULL,
    message       TEXT NOT NULL,
    acknowledged  INTEGER NOT NULL DEFAULT 0,
    metadata      TEXT NOT NULL DEFAULT '{}'
);
"""

_CREATE_ANALYTICS = """
CREATE TABLE IF NOT EXISTS daily_analytics (
    facility_id  TEXT NOT NULL,
    date         TEXT NOT NULL,
    payload      TEXT NOT NULL,
    created_at   INTEGER NOT NULL,
    PRIMARY KEY (facility_id, date)
);
"""

_CREATE_IDX = """
CREATE INDEX IF NOT EXISTS idx_readings_fac_ts ON readings (facility_id, timestamp, id);
CREATE INDEX IF NOT EXISTS idx_alerts_fac_ts   ON alerts   (facility_id, timestamp);
"""

_MEASUREMENTS = ["voltage", "current", "power_kw"]
_OPTIONAL = ["status", "temperature"]


def _encode_token(timestamp: int, row_id: int) -> str:
    return f"{timestamp}:{row_id}"


def _decode_token(token: str) -> tuple[int, int]:
    try:
        ts, row_id = token.split(":")
        return int(ts), int(row_id)
    except ValueError as exc:
        raise InvalidInputError(f"malformed page token {token!r}") from exc


class SQLiteStore:
    """Readings, alerts and daily summaries in one SQLite database."""

    def __init__(self, path: str = ":memory:") -> None:
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        with self._lock, self._conn:
            self._conn.executescript(_CREATE_READINGS + _CREATE_ALERTS + _CREATE_ANALYTICS + _CREATE_IDX)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ── Readings ──────────────────────────────────────────────────────────────

    def put_readings(self, readings: list[Reading]) -> None:
        if not readings:
            return
        rows = [
            (
                r.facility_id,
                r.meter_id,
                r.unix_timestamp,
                r.voltage,
                r.current,
                r.power_kw,
                r.status,
                r.temperature,
            )
            for r in readings
        ]
        with self._lock, self._conn:
            self._conn.executemany(
                """INSERT INTO readings
                   (facility_id, meter_id, timestamp, voltage, current,
                    power_kw, status, temperature)
                   VALUES (?,?,?,?,?,?,?,?)""",
                rows,
            )

    def count_readings(self, facility_id: str | None = None) -> int:
        sql = "SELECT COUNT(*) FROM readings"
        params: list = []
        if facility_id:
            sql += " WHERE facility_id = ?"
            params.append(facility_id)
        with self._lock:
            return self._conn.execute(sql, params).fetchone()[0]

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
    ) -> ReadingPage:
        """
        Readings with start <= timestamp <= end, ordered by (timestamp, id).

        Returns at most `limit` readings and a token for the next page when
        more rows remain.
        """
        if limit <= 0:
            raise InvalidInputError(f"page size must be positive, got {limit}")

        where = ["facility_id = ?", "timestamp BETWEEN ? AND ?"]
        params: list = [facility_id, int(start.timestamp()), int(end.timestamp())]

        if meter_id:
            where.append("meter_id = ?")
            params.append(meter_id)
        if page_token:
            ts, row_id = _decode_token(page_token)
            op = "<" if descending else ">"
            where.append(f"(timestamp {op} ? OR (timestamp = ? AND id {op} ?))")
            params.extend([ts, ts, row_id])

        order = "DESC" if descending else "ASC"
        sql = f"""SELECT * FROM readings WHERE {' AND '.join(where)}
                  ORDER BY timestamp {order}, id {order} LIMIT ?"""
        params.append(limit + 1)

        with self._lock:
            df = pd.read_sql_query(sql, self._conn, params=params)

        has_more = len(df) > limit
        df = df.iloc[:limit]
        next_token = None
        if has_more:
            last = df.iloc[-1]
            next_token = _encode_token(int(last["timestamp"]), int(last["id"]))

        # SQLite stores NaN as NULL; measurements go back to NaN, optional fields to None
        df = df.drop(columns=["id"])
        df[_MEASUREMENTS] = df[_MEASUREMENTS].astype(float)
        df[_OPTIONAL] = df[_OPTIONAL].astype(object).where(df[_OPTIONAL].notna(), None)
        readings = [Reading.model_validate(rec) for rec in df.to_dict("records")]
        return ReadingPage(readings=readings, next_token=next_token)

    # ── Alerts ────────────────────────────────────────────────────────────────

    def put_alert(self, alert: Alert) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                """INSERT OR IGNORE INTO alerts
                   (alert_id, facility_id, equipment_id, timestamp, severity,
                    type, message, acknowledged, metadata)
                   VALUES (?,?,?,?,?,?,?,?,?)""",
                (
                    alert.alert_id,
                    alert.facility_id,
                    alert.equipment_id,
                    alert.timestamp.isoformat(timespec="microseconds"),
                    alert.severity.value,
                    alert.type.value,
                    alert.message,
                    int(alert.acknowledged),
                    json.dumps(alert.metadata, sort_keys=True, default=str),
                ),
            )

    def get_alerts(
        self,
        facility_id: str,
        severity: AnomalySeverity | None = None,
        limit: int = MAX_ALERTS_DISPLAY,
    ) -> list[Alert]:
        """Fetch alerts for a facility, newest first."""
        where = ["facility_id = ?"]
        params: list = [facility_id]
        if severity is not None:
            where.append("severity = ?")
            params.append(AnomalySeverity(severity).value)

        sql = f"""SELECT * FROM alerts WHERE {' AND '.join(where)}
                  ORDER BY timestamp DESC LIMIT ?"""
        params.append(limit)

        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [
            Alert(
                **{k: row[k] for k in row.keys() if k not in ("acknowledged", "metadata")},
                acknowledged=bool(row["acknowledged"]),
                metadata=json.loads(row["metadata"]),
            )
            for row in rows
        ]

    def acknowledge_alert(self, alert_id: str) -> bool:
        with self._lock, self._conn:
            cur = self._conn.execute("UPDATE alerts SET acknowledged = 1 WHERE alert_id = ?", (alert_id,))
        return cur.rowcount > 0

    def count_active_alerts(self, facility_id: str | None = None) -> int:
        """Count unacknowledged alerts."""
        where = "acknowledged = 0"
        params: list = []
        if facility_id:
            where += " AND facility_id = ?"
            params.append(facility_id)
        with self._lock:
            return self._conn.execute(f"SELECT COUNT(*) FROM alerts WHERE {where}", params).fetchone()[0]

    # ── Daily analytics ───────────────────────────────────────────────────────

    def put_daily_analytics(self, analytics: DailyAnalytics) -> None:
        record = analytics.to_record()
        with self._lock, self._conn:
            self._conn.execute(
                """INSERT OR REPLACE INTO daily_analytics
                   (facility_id, date, payload, created_at) VALUES (?,?,?,?)""",
                (analytics.facility_id, analytics.date, json.dumps(record, sort_keys=True), record["created_at"]),
            )

    def get_daily_analytics(self, facility_id: str, date: str) -> DailyAnalytics | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT payload FROM daily_analytics WHERE facility_id = ? AND date = ?",
                (facility_id, date),
            ).fetchone()
        return DailyAnalytics.model_validate(json.loads(row["payload"])) if row else None

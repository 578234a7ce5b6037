"""
grid_analytics/errors.py
────────────────────────
Error taxonomy for the analytics core and its service layer.

  AnalyticsError      base class; carries facility/date context for retries
  InvalidInputError   malformed dates, non-positive windows, empty sequences
  CollaboratorError   a store / notifier / blob collaborator failed
"""
from __future__ import annotations


class AnalyticsError(Exception):
    def __init__(
        self,
        message: str,
        *,
        facility_id: str | None = None,
        date: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.facility_id = facility_id
        self.date = date

    def to_dict(self) -> dict:
        body: dict = {"error": self.message}
        if self.facility_id is not None:
            body["facility_id"] = self.facility_id
        if self.date is not None:
            body["date"] = self.date
        return body


class InvalidInputError(AnalyticsError, ValueError):
    pass


class CollaboratorError(AnalyticsError):
    pass

"""Alerting and completeness monitoring."""

from sma.monitoring.alerts import AlertMonitor, AlertSink
from sma.monitoring.completeness import CompletenessChecker, calendar_days, find_missing_days

__all__ = [
    "AlertMonitor",
    "AlertSink",
    "CompletenessChecker",
    "calendar_days",
    "find_missing_days",
]

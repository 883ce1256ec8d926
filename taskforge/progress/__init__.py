"""Progress rollup through the project hierarchy."""

from .aggregator import ProgressAggregator
from .notifier import BaseNotificationSink, LoggingNotificationSink, PROGRESS_UPDATED

__all__ = [
    "ProgressAggregator",
    "BaseNotificationSink",
    "LoggingNotificationSink",
    "PROGRESS_UPDATED",
]

"""Notification sinks for progress changes."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

logger = logging.getLogger(__name__)

PROGRESS_UPDATED = "progress.updated"


class BaseNotificationSink(ABC):
    """Pub/sub sink; delivery is the sink's concern."""

    @abstractmethod
    async def publish(self, event_type: str, payload: Dict[str, Any]) -> None:
        pass


class LoggingNotificationSink(BaseNotificationSink):
    """Writes notifications to the log. Used when no transport is wired up."""

    def __init__(self, level: int = logging.DEBUG):
        self.level = level

    async def publish(self, event_type: str, payload: Dict[str, Any]) -> None:
        logger.log(self.level, f"{event_type}: {payload}")

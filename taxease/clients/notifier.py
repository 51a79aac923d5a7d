"""Platform notification primitive used to show notifications outside the app."""

from __future__ import annotations

import itertools
import logging
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class NotificationPlatform(Protocol):
    async def send_local_notification(
        self, title: str, body: str, data: Optional[Dict[str, Any]] = None
    ) -> Optional[str]: ...

    async def schedule_notification(
        self,
        title: str,
        body: str,
        trigger: Dict[str, Any],
        data: Optional[Dict[str, Any]] = None,
    ) -> Optional[str]: ...

    async def cancel_all_notifications(self) -> bool: ...


class LoggingNotificationPlatform:
    """Writes notifications to the log instead of a device tray.

    Used by the command-line watcher and anywhere no device notification
    service is available. Returns identifiers the same way a tray would.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.scheduled: Dict[str, Dict[str, Any]] = {}

    async def send_local_notification(
        self, title: str, body: str, data: Optional[Dict[str, Any]] = None
    ) -> Optional[str]:
        notification_id = f"local-{next(self._ids)}"
        logger.info(
            "Notification: %s - %s",
            title,
            body,
            extra={"notification_id": notification_id},
        )
        return notification_id

    async def schedule_notification(
        self,
        title: str,
        body: str,
        trigger: Dict[str, Any],
        data: Optional[Dict[str, Any]] = None,
    ) -> Optional[str]:
        notification_id = f"scheduled-{next(self._ids)}"
        self.scheduled[notification_id] = {
            "title": title,
            "body": body,
            "trigger": trigger,
            "data": data or {},
        }
        logger.info(
            "Scheduled notification",
            extra={"notification_id": notification_id, "trigger": trigger},
        )
        return notification_id

    async def cancel_all_notifications(self) -> bool:
        self.scheduled.clear()
        return True


__all__ = ["LoggingNotificationPlatform", "NotificationPlatform"]

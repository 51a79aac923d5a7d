"""In-app notification list for the current session."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from taxease.clients import NotificationPlatform
from taxease.core.events import EventBus, NotificationRaised
from taxease.schemas import Notification
from taxease.services.admin_poller import AdminNotificationPoller

logger = logging.getLogger(__name__)


class NotificationCenter:
    """Newest-first notification list with read state.

    The list lives in memory only; a restart starts with an empty list even
    though notifications already delivered to the device tray remain there.
    """

    def __init__(
        self,
        platform: NotificationPlatform,
        bus: EventBus,
        poller: Optional[AdminNotificationPoller] = None,
    ) -> None:
        self._platform = platform
        self._poller = poller
        self.notifications: List[Notification] = []
        self.unread_count = 0
        self.admin_polling_active = False
        bus.subscribe(NotificationRaised, self._on_notification_raised)

    def _recount(self) -> None:
        self.unread_count = sum(1 for item in self.notifications if not item.read)

    def add(self, **fields: Any) -> Notification:
        notification = Notification(**fields)
        self.notifications.insert(0, notification)
        self._recount()
        logger.debug("Notification added", extra={"notification_id": notification.id})
        return notification

    def mark_as_read(self, notification_id: str) -> None:
        for notification in self.notifications:
            if notification.id == notification_id:
                notification.read = True
        self._recount()

    def mark_all_as_read(self) -> None:
        for notification in self.notifications:
            notification.read = True
        self._recount()

    def remove(self, notification_id: str) -> None:
        self.notifications = [
            item for item in self.notifications if item.id != notification_id
        ]
        self._recount()

    def _on_notification_raised(self, event: NotificationRaised) -> None:
        self.add(title=event.title, body=event.body, type=event.type, data=dict(event.data))

    # Platform pass-throughs

    async def send_local_notification(
        self, title: str, body: str, data: Optional[Dict[str, Any]] = None
    ) -> Optional[str]:
        data = data or {}
        notification_id = await self._platform.send_local_notification(title, body, data)
        if notification_id:
            self.add(title=title, body=body, type="local", data=data)
        return notification_id

    async def schedule_notification(
        self,
        title: str,
        body: str,
        trigger: Dict[str, Any],
        data: Optional[Dict[str, Any]] = None,
    ) -> Optional[str]:
        return await self._platform.schedule_notification(title, body, trigger, data or {})

    async def cancel_all_notifications(self) -> bool:
        return await self._platform.cancel_all_notifications()

    # Admin polling

    def start_admin_polling(self, token: str) -> None:
        if self.admin_polling_active or self._poller is None:
            return
        self._poller.start_polling(token)
        self.admin_polling_active = True

    async def stop_admin_polling(self) -> None:
        if not self.admin_polling_active or self._poller is None:
            return
        await self._poller.stop_polling()
        self.admin_polling_active = False


__all__ = ["NotificationCenter"]

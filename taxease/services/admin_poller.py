"""
Admin action poller.

There is no push channel from the backend, so two interval loops stand in for
one: a slow loop refreshes the cached form history, a fast loop diffs the most
recent form against durable markers and publishes admin events on changes.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from taxease.clients import BackendClient, BackendError
from taxease.core.config import PollingSettings
from taxease.core.events import AdminDocumentUploaded, AdminStatusChanged, EventBus
from taxease.schemas import (
    DRAFT_RETURN_CATEGORY,
    FINAL_RETURN_CATEGORY,
    TaxFormRecord,
)
from taxease.services.persistence import PersistenceService

logger = logging.getLogger(__name__)

# Age reported when the history was never fetched; always older than the limit.
_NEVER_FETCHED_MINUTES = 999.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AdminNotificationPoller:
    """Detects status changes and new admin documents on the latest submitted form."""

    def __init__(
        self,
        backend: BackendClient,
        persistence: PersistenceService,
        bus: EventBus,
        settings: PollingSettings,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._backend = backend
        self._persistence = persistence
        self._bus = bus
        self._settings = settings
        self._clock = clock

        self.is_polling = False
        self.last_check_time: Optional[datetime] = None
        self.last_history_fetch_time: Optional[datetime] = None
        self.cached_form_history: Optional[List[TaxFormRecord]] = None
        self._admin_task: Optional[asyncio.Task] = None
        self._history_task: Optional[asyncio.Task] = None

    # Lifecycle

    def start_polling(self, token: str) -> None:
        if self.is_polling:
            return
        self.is_polling = True
        self._admin_task = asyncio.create_task(
            self._every(self._settings.admin_interval_seconds, self.check_for_admin_actions, token),
            name="admin-poller",
        )
        self._history_task = asyncio.create_task(
            self._every(self._settings.history_interval_seconds, self.fetch_tax_form_history, token),
            name="admin-history-poller",
        )
        logger.info("Admin polling started")

    async def stop_polling(self) -> None:
        tasks = [task for task in (self._admin_task, self._history_task) if task is not None]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._admin_task = None
        self._history_task = None
        if self.is_polling:
            logger.info("Admin polling stopped")
        self.is_polling = False

    def is_polling_active(self) -> bool:
        return self.is_polling

    async def _every(
        self, seconds: float, action: Callable[[str], Awaitable[None]], token: str
    ) -> None:
        # First run happens immediately, then once per interval.
        while True:
            try:
                await action(token)
            except Exception:
                logger.exception("Admin poll cycle failed")
            await asyncio.sleep(seconds)

    # Cycles

    async def fetch_tax_form_history(self, token: str) -> None:
        if not token:
            return
        try:
            response = await self._backend.get_tax_form_history(token)
        except BackendError as exc:
            logger.warning("Form history refresh failed", extra={"error": exc.message})
            return
        if response.success and response.data:
            self.cached_form_history = response.data
            self.last_history_fetch_time = self._clock()
        else:
            self.cached_form_history = []

    def cache_age_minutes(self) -> float:
        if self.last_history_fetch_time is None:
            return _NEVER_FETCHED_MINUTES
        return (self._clock() - self.last_history_fetch_time).total_seconds() / 60

    async def check_for_admin_actions(self, token: str) -> None:
        if not token:
            return
        if (
            self.cached_form_history is None
            or self.cache_age_minutes() > self._settings.history_max_age_minutes
        ):
            await self.fetch_tax_form_history(token)

        history = self.cached_form_history or []
        if history:
            await self.process_tax_form_changes(history[0])
        self.last_check_time = self._clock()

    async def force_check(self, token: str) -> None:
        await self.check_for_admin_actions(token)

    async def process_tax_form_changes(self, form: TaxFormRecord) -> None:
        if form.status:
            await self._handle_status_change(form)
        if form.admin_documents:
            await self._handle_admin_documents(form)

    async def _handle_status_change(self, form: TaxFormRecord) -> None:
        stored = await self._persistence.get_status_marker(form.id)
        if stored is None:
            # First sight of this form: remember it without notifying.
            await self._persistence.store_status_marker(form.id, form.status)
            return
        if stored != form.status:
            logger.info(
                "Admin status change detected",
                extra={"form_id": form.id, "old_status": stored, "new_status": form.status},
            )
            await self._bus.publish(
                AdminStatusChanged(old_status=stored, new_status=form.status, form_id=form.id)
            )
        await self._persistence.store_status_marker(form.id, form.status)

    async def _handle_admin_documents(self, form: TaxFormRecord) -> None:
        stored = await self._persistence.get_documents_marker(form.id) or []
        seen = {document.marker_key for document in stored}
        for document in form.admin_documents:
            if document.marker_key in seen:
                continue
            if document.category in (DRAFT_RETURN_CATEGORY, FINAL_RETURN_CATEGORY):
                logger.info(
                    "New admin document detected",
                    extra={"form_id": form.id, "document_id": document.id},
                )
                await self._bus.publish(
                    AdminDocumentUploaded(
                        form_id=form.id,
                        document_id=document.id,
                        name=document.name,
                        category=document.category,
                    )
                )
        await self._persistence.store_documents_marker(form.id, form.admin_documents)

    # Manual and debug operations

    async def clear_stored_data(self, form_id: str) -> None:
        await self._persistence.clear_admin_markers(form_id)

    async def trigger_status_change_notification(
        self, old_status: str, new_status: str, form_id: str
    ) -> None:
        await self._bus.publish(
            AdminStatusChanged(old_status=old_status, new_status=new_status, form_id=form_id)
        )

    async def trigger_draft_document_notification(
        self, file_name: str, form_id: str, document_id: str = "manual"
    ) -> None:
        await self._bus.publish(
            AdminDocumentUploaded(
                form_id=form_id,
                document_id=document_id,
                name=file_name,
                category=DRAFT_RETURN_CATEGORY,
            )
        )

    async def trigger_final_document_notification(
        self, file_name: str, form_id: str, document_id: str = "manual"
    ) -> None:
        await self._bus.publish(
            AdminDocumentUploaded(
                form_id=form_id,
                document_id=document_id,
                name=file_name,
                category=FINAL_RETURN_CATEGORY,
            )
        )

    def get_polling_status(self) -> Dict[str, Any]:
        age = (
            round(self.cache_age_minutes())
            if self.last_history_fetch_time is not None
            else None
        )
        return {
            "is_active": self.is_polling,
            "last_check": self.last_check_time,
            "last_history_fetch": self.last_history_fetch_time,
            "admin_interval": "active" if self._admin_task is not None else "inactive",
            "history_interval": "active" if self._history_task is not None else "inactive",
            "cached_data_age_minutes": age,
        }


__all__ = ["AdminNotificationPoller"]

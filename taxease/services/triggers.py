"""
Named notification triggers.

Each trigger builds a canned title/body pair and hands it to the platform
notification primitive. The admin triggers also publish ``NotificationRaised``
so the in-app list shows them; they fire from admin events on the bus.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from taxease.clients import NotificationPlatform
from taxease.core.events import (
    AdminDocumentUploaded,
    AdminStatusChanged,
    EventBus,
    NotificationRaised,
)
from taxease.schemas import DRAFT_RETURN_CATEGORY, FINAL_RETURN_CATEGORY

logger = logging.getLogger(__name__)

TriggerHandler = Callable[..., Awaitable[None]]

STATUS_MESSAGES: Dict[str, str] = {
    "submitted": "Your tax application has been submitted and is under review.",
    "under_review": "Your tax application is now under review by our tax professionals.",
    "processing": "Your tax application is being processed. We'll notify you when it's complete.",
    "approved": "Great news! Your tax application has been approved.",
    "rejected": "Your tax application requires attention. Please check for any issues.",
    "completed": "Your tax application has been completed successfully.",
}


def status_message(status: str) -> str:
    return STATUS_MESSAGES.get(
        status, f"Your application status has been updated to: {status}"
    )


def status_notification_type(status: str) -> str:
    if status in ("approved", "completed"):
        return "success"
    if status == "rejected":
        return "error"
    return "info"


class NotificationTriggers:
    """Name to handler registry; unknown names are logged and ignored."""

    def __init__(self, platform: NotificationPlatform, bus: EventBus) -> None:
        self._platform = platform
        self._bus = bus
        self._triggers: Dict[str, TriggerHandler] = {}
        self._register_defaults()
        bus.subscribe(AdminStatusChanged, self._on_status_changed)
        bus.subscribe(AdminDocumentUploaded, self._on_document_uploaded)

    def register_trigger(self, name: str, handler: TriggerHandler) -> None:
        self._triggers[name] = handler
        logger.debug("Registered notification trigger", extra={"trigger": name})

    def remove_trigger(self, name: str) -> bool:
        return self._triggers.pop(name, None) is not None

    def list_triggers(self) -> List[str]:
        return list(self._triggers)

    async def trigger(self, name: str, *args: Any) -> None:
        handler = self._triggers.get(name)
        if handler is None:
            logger.warning(
                "Notification trigger not found",
                extra={"trigger": name, "available": self.list_triggers()},
            )
            return
        try:
            await handler(*args)
        except Exception:
            logger.exception("Notification trigger failed", extra={"trigger": name})

    # Bus subscriptions

    async def _on_status_changed(self, event: AdminStatusChanged) -> None:
        await self.trigger(
            "adminStatusChanged", event.old_status, event.new_status, event.form_id
        )

    async def _on_document_uploaded(self, event: AdminDocumentUploaded) -> None:
        if event.category == DRAFT_RETURN_CATEGORY:
            await self.trigger(
                "adminDraftDocumentUploaded", "Draft Tax Return", event.name, event.form_id
            )
        elif event.category == FINAL_RETURN_CATEGORY:
            await self.trigger(
                "adminFinalDocumentUploaded", "Final Tax Return", event.name, event.form_id
            )

    # Canned notifications

    async def _send(self, title: str, body: str, data: Dict[str, Any]) -> None:
        await self._platform.send_local_notification(title, body, data)

    async def _schedule(
        self, title: str, body: str, days_ahead: int, data: Dict[str, Any]
    ) -> None:
        when = datetime.now(timezone.utc) + timedelta(days=days_ahead)
        await self._platform.schedule_notification(
            title, body, {"date": when.isoformat()}, data
        )

    async def _raise_in_app(
        self, title: str, body: str, type_: str, data: Dict[str, Any]
    ) -> None:
        await self._send(title, body, data)
        await self._bus.publish(
            NotificationRaised(title=title, body=body, type=type_, data=data)
        )

    def _register_defaults(self) -> None:
        async def document_uploaded(document_type: str, file_name: str) -> None:
            await self._send(
                "Document Uploaded Successfully",
                f'Your {document_type} document "{file_name}" has been uploaded and is ready for review.',
                {"screen": "DocumentReview", "type": "success"},
            )

        async def tax_deadline_reminder(days_left: int) -> None:
            await self._send(
                "Tax Deadline Reminder",
                f"Only {days_left} days left to file your taxes. Don't miss the deadline!",
                {"screen": "TaxWizard", "type": "warning"},
            )

        async def refund_processed(amount: Any) -> None:
            await self._send(
                "Refund Processed",
                f"Your tax refund of ${amount} has been approved and will be deposited "
                "within 5-7 business days.",
                {"screen": "Dashboard", "type": "success"},
            )

        async def document_rejected(document_type: str, reason: str) -> None:
            await self._send(
                "Document Needs Attention",
                f"Your {document_type} document was rejected: {reason}. "
                "Please upload a new document.",
                {"screen": "DocumentUpload", "type": "error"},
            )

        async def appointment_scheduled(date: str, time: str) -> None:
            await self._send(
                "Appointment Scheduled",
                f"Your tax consultation appointment is scheduled for {date} at {time}.",
                {"screen": "AppointmentScreen", "type": "info"},
            )

        async def welcome_message(user_name: str) -> None:
            await self._send(
                "Welcome to TaxEase!",
                f"Hi {user_name}! Thank you for choosing TaxEase for your tax filing "
                "needs. We're here to help you every step of the way.",
                {"screen": "Dashboard", "type": "info"},
            )

        async def form_submitted() -> None:
            await self._send(
                "Tax Form Submitted",
                "Your tax form has been successfully submitted and is now under review "
                "by our tax professionals.",
                {"screen": "Dashboard", "type": "success"},
            )

        async def review_complete() -> None:
            await self._send(
                "Review Complete",
                "Your tax form review is complete. You can now proceed with filing your taxes.",
                {"screen": "DocumentReview", "type": "success"},
            )

        async def schedule_weekly_reminder() -> None:
            await self._schedule(
                "Weekly Tax Progress Check",
                "How is your tax filing progress going? Don't forget to upload any "
                "missing documents.",
                7,
                {"screen": "Dashboard", "type": "info"},
            )

        async def schedule_deadline_reminder(days_before_deadline: int = 7) -> None:
            await self._schedule(
                "Tax Deadline Approaching",
                "Tax filing deadline is approaching! Make sure to complete your tax "
                "return soon.",
                days_before_deadline,
                {"screen": "TaxWizard", "type": "warning"},
            )

        async def admin_status_changed(
            old_status: str, new_status: str, application_id: Optional[str]
        ) -> None:
            await self._raise_in_app(
                "Application Status Updated",
                status_message(new_status),
                "admin_status_change",
                {
                    "screen": "Dashboard",
                    "type": status_notification_type(new_status),
                    "applicationId": application_id,
                    "oldStatus": old_status,
                    "newStatus": new_status,
                },
            )

        async def admin_draft_document_uploaded(
            document_type: str, file_name: str, application_id: Optional[str]
        ) -> None:
            await self._raise_in_app(
                "Draft Document Available",
                f'A new draft {document_type} document "{file_name}" has been uploaded '
                "by your tax professional. You can review it in your documents.",
                "admin_document_upload",
                {
                    "screen": "DocumentReview",
                    "type": "info",
                    "applicationId": application_id,
                    "documentType": document_type,
                    "fileName": file_name,
                    "isDraft": True,
                },
            )

        async def admin_final_document_uploaded(
            document_type: str, file_name: str, application_id: Optional[str]
        ) -> None:
            await self._raise_in_app(
                "Final Document Ready",
                f'Your final {document_type} document "{file_name}" is now available! '
                "Your tax return is complete and ready for filing.",
                "admin_document_upload",
                {
                    "screen": "DocumentReview",
                    "type": "success",
                    "applicationId": application_id,
                    "documentType": document_type,
                    "fileName": file_name,
                    "isFinal": True,
                },
            )

        self.register_trigger("documentUploaded", document_uploaded)
        self.register_trigger("taxDeadlineReminder", tax_deadline_reminder)
        self.register_trigger("refundProcessed", refund_processed)
        self.register_trigger("documentRejected", document_rejected)
        self.register_trigger("appointmentScheduled", appointment_scheduled)
        self.register_trigger("welcomeMessage", welcome_message)
        self.register_trigger("formSubmitted", form_submitted)
        self.register_trigger("reviewComplete", review_complete)
        self.register_trigger("scheduleWeeklyReminder", schedule_weekly_reminder)
        self.register_trigger("scheduleDeadlineReminder", schedule_deadline_reminder)
        self.register_trigger("adminStatusChanged", admin_status_changed)
        self.register_trigger("adminDraftDocumentUploaded", admin_draft_document_uploaded)
        self.register_trigger("adminFinalDocumentUploaded", admin_final_document_uploaded)


__all__ = [
    "NotificationTriggers",
    "STATUS_MESSAGES",
    "status_message",
    "status_notification_type",
]

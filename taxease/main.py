"""
Composition root for the TaxEase client core.

Every client and service is built here and handed to the services that need
it; nothing below this module holds module-level service instances.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from taxease.clients import (
    BackendClient,
    BackendTransferGateway,
    LoggingNotificationPlatform,
    NotificationPlatform,
    SQLiteKeyValueStore,
    TransferGateway,
)
from taxease.core.config import AppSettings, get_settings
from taxease.core.events import EventBus
from taxease.core.logging import configure_logging
from taxease.services import (
    AdminNotificationPoller,
    AppointmentService,
    AuthSession,
    CredentialVault,
    FeedbackService,
    NotificationCenter,
    NotificationTriggers,
    PersistenceService,
    SubmissionWorkflow,
    SupportService,
    TaxFormSubmitter,
    TaxWizard,
)

logger = logging.getLogger(__name__)


@dataclass
class TaxEaseApp:
    """Wired application services sharing one session and one event bus."""

    settings: AppSettings
    bus: EventBus
    session: AuthSession
    store: SQLiteKeyValueStore
    backend: BackendClient
    gateway: TransferGateway
    persistence: PersistenceService
    triggers: NotificationTriggers
    poller: AdminNotificationPoller
    notifications: NotificationCenter
    submitter: TaxFormSubmitter
    submission: SubmissionWorkflow
    vault: Optional[CredentialVault] = None
    support: Optional[SupportService] = None
    appointments: Optional[AppointmentService] = None
    feedback: Optional[FeedbackService] = None

    def new_wizard(self, initial_step: Optional[int] = None) -> TaxWizard:
        return TaxWizard(
            self.settings.wizard,
            self.persistence,
            self.session,
            self.bus,
            self.gateway,
            initial_step=initial_step,
        )

    async def sign_in(
        self,
        user_id: str,
        access_token: str,
        *,
        refresh_token: Optional[str] = None,
        user: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.session.sign_in(user_id, access_token)
        if self.vault is not None:
            await self.vault.store_tokens(access_token, refresh_token)
            if user is not None:
                await self.vault.store_user(user)
        logger.info("User signed in", extra={"user_id": user_id})

    async def sign_out(self) -> None:
        await self.notifications.stop_admin_polling()
        if self.vault is not None:
            await self.vault.clear()
        self.session.sign_out()

    async def shutdown(self) -> None:
        await self.notifications.stop_admin_polling()
        await self.poller.stop_polling()


def create_app(
    settings: Optional[AppSettings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    platform: Optional[NotificationPlatform] = None,
    gateway: Optional[TransferGateway] = None,
) -> TaxEaseApp:
    """Build the client core; ``transport`` lets tests route HTTP to a fake backend."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    bus = EventBus()
    session = AuthSession()
    store = SQLiteKeyValueStore(settings.storage.db_path)
    backend = BackendClient(settings.api, transport=transport)
    gateway = gateway or BackendTransferGateway(settings.api, transport=transport)
    platform = platform or LoggingNotificationPlatform()
    persistence = PersistenceService(store)

    triggers = NotificationTriggers(platform, bus)
    poller = AdminNotificationPoller(backend, persistence, bus, settings.polling)
    notifications = NotificationCenter(platform, bus, poller)
    submitter = TaxFormSubmitter(backend)

    vault = None
    support = appointments = feedback = None
    if settings.security.token_secret:
        vault = CredentialVault(store, secret=settings.security.token_secret)
        support = SupportService(backend, vault)
        appointments = AppointmentService(backend, vault)
        feedback = FeedbackService(backend, vault)
    else:
        logger.warning("TAXEASE_TOKEN_SECRET not set; credential vault disabled")

    return TaxEaseApp(
        settings=settings,
        bus=bus,
        session=session,
        store=store,
        backend=backend,
        gateway=gateway,
        persistence=persistence,
        triggers=triggers,
        poller=poller,
        notifications=notifications,
        submitter=submitter,
        submission=SubmissionWorkflow(submitter, session, bus, triggers),
        vault=vault,
        support=support,
        appointments=appointments,
        feedback=feedback,
    )


__all__ = ["TaxEaseApp", "create_app"]

"""Support request, appointment and feedback services.

These read the access token from the credential vault on every call, the way
the help screens use them outside the wizard's session object.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from taxease.clients import BackendClient
from taxease.schemas import AppointmentRequest, FeedbackRequest, SupportRequest
from taxease.services.credentials import CredentialError, CredentialVault

logger = logging.getLogger(__name__)


class _VaultAuthenticatedService:
    def __init__(self, backend: BackendClient, vault: CredentialVault) -> None:
        self._backend = backend
        self._vault = vault

    async def _token(self) -> Optional[str]:
        try:
            access_token, _ = await self._vault.get_tokens()
        except CredentialError:
            logger.exception("Error getting auth token")
            return None
        return access_token


class SupportService(_VaultAuthenticatedService):
    async def submit_support_request(self, request: SupportRequest) -> Dict[str, Any]:
        logger.info("Submitting support request", extra={"category": request.category})
        return await self._backend.submit_support_request(request, await self._token())

    async def get_support_request_history(self) -> Dict[str, Any]:
        return await self._backend.get_support_history(await self._token())


class AppointmentService(_VaultAuthenticatedService):
    async def submit_appointment(self, request: AppointmentRequest) -> Dict[str, Any]:
        logger.info(
            "Submitting appointment",
            extra={"date": request.date, "time": request.time},
        )
        return await self._backend.submit_appointment(request, await self._token())

    async def get_appointment_history(self) -> Dict[str, Any]:
        return await self._backend.get_appointment_history(await self._token())

    async def get_available_time_slots(self, date: str) -> Dict[str, Any]:
        return await self._backend.get_available_time_slots(date, await self._token())

    async def cancel_appointment(self, appointment_id: str) -> Dict[str, Any]:
        return await self._backend.cancel_appointment(appointment_id, await self._token())


class FeedbackService(_VaultAuthenticatedService):
    async def submit_feedback(self, request: FeedbackRequest) -> Dict[str, Any]:
        logger.info("Submitting feedback", extra={"rating": request.rating})
        return await self._backend.submit_feedback(request, await self._token())

    async def get_feedback_history(self) -> Dict[str, Any]:
        return await self._backend.get_feedback_history(await self._token())


__all__ = ["AppointmentService", "FeedbackService", "SupportService"]

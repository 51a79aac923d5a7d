"""
Client for the TaxEase backend REST API.

Every call opens a short-lived ``httpx.AsyncClient`` with the configured
timeout. Failures surface as a single ``BackendError`` whose message comes
from the response body when the backend sent one, or from the HTTP status.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from taxease.core.config import ApiSettings
from taxease.schemas import (
    AppointmentRequest,
    FeedbackRequest,
    FormHistoryResponse,
    SubmissionPayload,
    SubmissionResponse,
    SupportRequest,
)
from taxease.utils.http import RetryConfig, request_with_retry

logger = logging.getLogger(__name__)

NETWORK_ERROR_MESSAGE = (
    "Network error: Cannot reach server. Please check your internet connection."
)
TIMEOUT_ERROR_MESSAGE = "Network error: The request timed out. Please try again."


class BackendError(Exception):
    """Raised when a backend call fails at the transport or HTTP level."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload or {}

    @property
    def is_network_error(self) -> bool:
        return self.status_code is None

    @property
    def is_auth_error(self) -> bool:
        return self.status_code == 401


def _error_message(payload: Dict[str, Any], status_code: int) -> str:
    for key in ("error", "message", "details"):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return f"HTTP error! status: {status_code}"


class BackendClient:
    """Typed wrappers around the backend endpoints the client core consumes."""

    def __init__(
        self,
        settings: ApiSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._retry = RetryConfig(attempts=settings.retry_attempts)

    @staticmethod
    def _headers(token: Optional[str]) -> Dict[str, str]:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        token: Optional[str] = None,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Perform a request and return the decoded JSON body."""
        url = self._settings.url(endpoint)
        kwargs: Dict[str, Any] = {"headers": self._headers(token), "params": params}
        if json is not None:
            kwargs["json"] = json

        try:
            async with httpx.AsyncClient(
                timeout=self._settings.timeout_seconds, transport=self._transport
            ) as client:
                if method.upper() == "GET":
                    response = await request_with_retry(
                        client.request,
                        method,
                        url,
                        retry_config=self._retry,
                        **kwargs,
                    )
                else:
                    response = await client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("Backend request timed out", extra={"endpoint": endpoint})
            raise BackendError(TIMEOUT_ERROR_MESSAGE) from exc
        except httpx.TransportError as exc:
            logger.warning("Backend unreachable", extra={"endpoint": endpoint})
            raise BackendError(NETWORK_ERROR_MESSAGE) from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.is_error:
            body = payload if isinstance(payload, dict) else {}
            raise BackendError(
                _error_message(body, response.status_code),
                status_code=response.status_code,
                payload=body,
            )
        if not isinstance(payload, dict):
            raise BackendError(
                f"Server returned an invalid response for {endpoint}.",
                status_code=response.status_code,
            )
        return payload

    # Tax forms

    async def submit_tax_form(
        self, payload: SubmissionPayload, token: str
    ) -> SubmissionResponse:
        data = await self.request(
            "POST",
            "/tax-forms/submit",
            token=token,
            json=payload.model_dump(mode="json", by_alias=True),
        )
        return SubmissionResponse.model_validate(data)

    async def get_tax_form_history(self, token: str) -> FormHistoryResponse:
        data = await self.request("GET", "/tax-forms/history", token=token)
        return FormHistoryResponse.model_validate(data)

    async def get_tax_form_details(self, form_id: str, token: str) -> Dict[str, Any]:
        data = await self.request("GET", f"/tax-forms/{form_id}", token=token)
        return data.get("data", data)

    # Support, appointments and feedback

    async def submit_support_request(
        self, request: SupportRequest, token: Optional[str]
    ) -> Dict[str, Any]:
        return await self.request(
            "POST", "/support/submit", token=token, json=request.model_dump()
        )

    async def get_support_history(self, token: Optional[str]) -> Dict[str, Any]:
        return await self.request("GET", "/support/history", token=token)

    async def submit_appointment(
        self, request: AppointmentRequest, token: Optional[str]
    ) -> Dict[str, Any]:
        return await self.request(
            "POST",
            "/appointments/submit",
            token=token,
            json=request.model_dump(by_alias=True),
        )

    async def get_appointment_history(self, token: Optional[str]) -> Dict[str, Any]:
        return await self.request("GET", "/appointments/history", token=token)

    async def get_available_time_slots(
        self, date: str, token: Optional[str]
    ) -> Dict[str, Any]:
        return await self.request(
            "GET",
            "/appointments/available-slots",
            token=token,
            params={"date": date},
        )

    async def cancel_appointment(
        self, appointment_id: str, token: Optional[str]
    ) -> Dict[str, Any]:
        return await self.request(
            "POST",
            "/appointments/cancel",
            token=token,
            json={"appointmentId": appointment_id},
        )

    async def submit_feedback(
        self, request: FeedbackRequest, token: Optional[str]
    ) -> Dict[str, Any]:
        return await self.request(
            "POST", "/feedback/submit", token=token, json=request.model_dump()
        )

    async def get_feedback_history(self, token: Optional[str]) -> Dict[str, Any]:
        return await self.request("GET", "/feedback/history", token=token)


__all__ = ["BackendClient", "BackendError"]

"""
Validation and submission of a completed tax form.

``TaxFormSubmitter`` builds and posts the payload. ``SubmissionWorkflow`` is
the final-step action of the wizard: it checks the session, validates, refuses
while uploads are still running, posts, and clears the saved draft on success.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from taxease.clients import BackendClient, BackendError
from taxease.core.events import EventBus, SubmissionFailed, SubmissionSucceeded
from taxease.schemas import (
    Dependent,
    FormHistoryResponse,
    SubmissionPayload,
    SubmissionResponse,
    TaxFormData,
    UploadedDocument,
    ValidationResult,
)
from taxease.services.session import AuthSession
from taxease.services.triggers import NotificationTriggers
from taxease.services.wizard import TaxWizard

logger = logging.getLogger(__name__)

_SSN_PATTERN = re.compile(r"^\d{3}-?\d{2}-?\d{4}$")
_WHITESPACE = re.compile(r"\s")

NETWORK_FAILURE_MESSAGE = (
    "Network error. Please check your internet connection and try again."
)
AUTH_FAILURE_MESSAGE = "Authentication error. Please log in again."
GENERIC_FAILURE_MESSAGE = "Failed to submit form. Please try again."


def describe_submission_error(exc: BaseException) -> str:
    """Most specific user-facing message for a failed submission."""
    if isinstance(exc, BackendError):
        if exc.is_network_error:
            return NETWORK_FAILURE_MESSAGE
        if exc.is_auth_error:
            return AUTH_FAILURE_MESSAGE
    message = str(exc)
    if not message:
        return GENERIC_FAILURE_MESSAGE
    if "Network" in message:
        return NETWORK_FAILURE_MESSAGE
    if "Authentication" in message:
        return AUTH_FAILURE_MESSAGE
    return message


class TaxFormSubmitter:
    """Assembles the submission payload and talks to the tax-form endpoints."""

    def __init__(self, backend: BackendClient) -> None:
        self._backend = backend

    @staticmethod
    def prepare_documents_for_submission(form_data: TaxFormData) -> List[UploadedDocument]:
        documents = [doc for doc in form_data.iter_documents() if doc.is_submittable]
        logger.debug("Prepared documents for submission", extra={"count": len(documents)})
        return documents

    @staticmethod
    def prepare_dependents_for_submission(dependents: Iterable[Dependent]) -> List[Dependent]:
        return [dependent for dependent in dependents if dependent.is_complete]

    @staticmethod
    def get_incomplete_uploads(form_data: TaxFormData) -> List[UploadedDocument]:
        return [
            doc
            for doc in form_data.iter_documents()
            if doc.status in ("uploading", "error")
        ]

    def validate_form_data(self, form_data: TaxFormData) -> ValidationResult:
        errors: List[str] = []

        ssn = form_data.social_security_number or ""
        if not ssn.strip():
            errors.append("Social Security Number is required")
        elif not _SSN_PATTERN.match(_WHITESPACE.sub("", ssn)):
            errors.append("Invalid Social Security Number format")

        if not self.prepare_documents_for_submission(form_data):
            errors.append("At least one document must be uploaded and completed")

        incomplete = self.get_incomplete_uploads(form_data)
        if incomplete:
            errors.append(
                f"Please wait for {len(incomplete)} document(s) to finish uploading"
            )

        return ValidationResult(is_valid=not errors, errors=errors)

    def build_payload(
        self, form_data: TaxFormData, dependents: Iterable[Dependent] = ()
    ) -> SubmissionPayload:
        return SubmissionPayload(
            social_security_number=form_data.social_security_number,
            documents=self.prepare_documents_for_submission(form_data),
            dependents=self.prepare_dependents_for_submission(dependents),
            additional_income_sources=form_data.additional_income_sources,
        )

    async def submit_tax_form(
        self,
        form_data: TaxFormData,
        token: str,
        *,
        dependents: Iterable[Dependent] = (),
    ) -> SubmissionResponse:
        payload = self.build_payload(form_data, dependents)
        logger.info(
            "Submitting tax form",
            extra={
                "document_count": len(payload.documents),
                "dependent_count": len(payload.dependents),
                "has_ssn": bool(payload.social_security_number),
            },
        )
        response = await self._backend.submit_tax_form(payload, token)
        logger.info("Tax form submitted", extra={"tax_form_id": response.tax_form_id})
        return response

    async def get_tax_form_history(self, token: str) -> FormHistoryResponse:
        return await self._backend.get_tax_form_history(token)

    async def get_tax_form_details(self, form_id: str, token: str) -> Dict[str, Any]:
        return await self._backend.get_tax_form_details(form_id, token)


@dataclass(slots=True)
class SubmissionOutcome:
    """What the final-step action shows the user."""

    submitted: bool
    title: str
    message: str
    response: Optional[SubmissionResponse] = None


class SubmissionWorkflow:
    def __init__(
        self,
        submitter: TaxFormSubmitter,
        session: AuthSession,
        bus: EventBus,
        triggers: Optional[NotificationTriggers] = None,
    ) -> None:
        self._submitter = submitter
        self._session = session
        self._bus = bus
        self._triggers = triggers
        self.is_submitting = False

    async def submit(self, wizard: TaxWizard) -> SubmissionOutcome:
        if self.is_submitting:
            return SubmissionOutcome(False, "Submission in Progress", "Your form is already being submitted.")

        self.is_submitting = True
        try:
            if not self._session.user_id or not self._session.token:
                return SubmissionOutcome(
                    False,
                    "Authentication Required",
                    "Please log in to submit your tax form.",
                )

            validation = self._submitter.validate_form_data(wizard.form_data)
            if not validation.is_valid:
                return SubmissionOutcome(
                    False, "Validation Error", "\n".join(validation.errors)
                )

            if wizard.is_uploading:
                return SubmissionOutcome(
                    False,
                    "Upload in Progress",
                    "Please wait for all documents to finish uploading before submitting.",
                )

            try:
                response = await self._submitter.submit_tax_form(
                    wizard.form_data,
                    self._session.token,
                    dependents=wizard.dependents,
                )
            except BackendError as exc:
                message = describe_submission_error(exc)
                logger.warning("Tax form submission failed", extra={"error": exc.message})
                await self._bus.publish(SubmissionFailed(message=message))
                return SubmissionOutcome(False, "Submission Error", message)

            wizard.reset()
            await wizard.clear_saved_data()

            form_id = response.tax_form_id
            await self._bus.publish(
                SubmissionSucceeded(
                    tax_form_id=str(form_id) if form_id is not None else None,
                    document_count=response.data.document_count,
                    dependent_count=response.data.dependent_count,
                )
            )
            if self._triggers is not None:
                await self._triggers.trigger("formSubmitted")

            return SubmissionOutcome(
                True,
                "Success!",
                "Your tax form has been submitted successfully.\n\n"
                f"Form ID: {form_id}\n"
                f"Documents: {response.data.document_count}\n"
                f"Dependents: {response.data.dependent_count}",
                response,
            )
        finally:
            self.is_submitting = False


__all__ = [
    "SubmissionOutcome",
    "SubmissionWorkflow",
    "TaxFormSubmitter",
    "describe_submission_error",
]

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json

import httpx
import pytest

from taxease.clients import BackendClient, BackendError
from taxease.core.config import ApiSettings, WizardSettings
from taxease.core.events import EventBus, SubmissionFailed, SubmissionSucceeded
from taxease.schemas import (
    AdditionalIncomeSource,
    Dependent,
    TaxFormData,
    UploadedDocument,
    WizardSnapshot,
)
from taxease.services import (
    AuthSession,
    SubmissionWorkflow,
    TaxFormSubmitter,
    TaxWizard,
)
from taxease.services.submission import (
    AUTH_FAILURE_MESSAGE,
    GENERIC_FAILURE_MESSAGE,
    NETWORK_FAILURE_MESSAGE,
    describe_submission_error,
)


def _completed(name: str = "w2.pdf", category: str = "w2Forms") -> UploadedDocument:
    return UploadedDocument(
        name=name,
        category=category,
        status="completed",
        progress_percent=100,
        remote_path=f"users/user-1/{name}",
        public_url=f"https://storage.test/{name}",
    )


class SubmitBackend:
    """MockTransport handler that records requests to the tax-form endpoints."""

    def __init__(self, status_code: int = 201, body: dict | None = None) -> None:
        self.status_code = status_code
        self.body = body or {
            "success": True,
            "taxFormId": 42,
            "data": {"documentCount": 1, "dependentCount": 1},
        }
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.body)

    def client(self) -> BackendClient:
        return BackendClient(
            ApiSettings(base_url="https://backend.test"),
            transport=httpx.MockTransport(self),
        )


class FakeTriggers:
    def __init__(self) -> None:
        self.fired: list[str] = []

    async def trigger(self, name: str, *args) -> None:
        self.fired.append(name)


class MemoryPersistence:
    def __init__(self) -> None:
        self.cleared: list[str] = []
        self.saves = 0

    async def load_all_form_data(self, user_id) -> WizardSnapshot:
        return WizardSnapshot()

    async def save_all_form_data(self, snapshot, user_id) -> bool:
        self.saves += 1
        return True

    async def clear_all_form_data(self, user_id) -> bool:
        self.cleared.append(user_id)
        return True

    async def has_saved_form_data(self, user_id) -> bool:
        return False


class NullGateway:
    async def upload(self, file, *, user_id, category, token, on_progress=None):
        raise AssertionError("no uploads expected")

    async def delete(self, remote_path, *, token=None):
        return True


def _wizard(session: AuthSession, bus: EventBus, persistence: MemoryPersistence) -> TaxWizard:
    return TaxWizard(
        WizardSettings(total_steps=5, autosave_delay_seconds=0.01),
        persistence,
        session,
        bus,
        NullGateway(),
    )


def test_empty_ssn_reports_required_and_missing_documents() -> None:
    submitter = TaxFormSubmitter(SubmitBackend().client())

    result = submitter.validate_form_data(TaxFormData())

    assert result.is_valid is False
    assert result.errors == [
        "Social Security Number is required",
        "At least one document must be uploaded and completed",
    ]


@pytest.mark.parametrize("ssn", ["12-345", "123-45-678", "abc-de-fghi"])
def test_malformed_ssn_is_rejected(ssn: str) -> None:
    submitter = TaxFormSubmitter(SubmitBackend().client())

    result = submitter.validate_form_data(
        TaxFormData(social_security_number=ssn, w2_forms=[_completed()])
    )

    assert result.errors == ["Invalid Social Security Number format"]


@pytest.mark.parametrize("ssn", ["123-45-6789", "123456789", "123 45 6789"])
def test_valid_ssn_with_completed_document_passes(ssn: str) -> None:
    submitter = TaxFormSubmitter(SubmitBackend().client())

    result = submitter.validate_form_data(
        TaxFormData(social_security_number=ssn, medical_documents=[_completed()])
    )

    assert result.is_valid is True
    assert result.errors == []


def test_incomplete_uploads_are_counted_across_income_sources() -> None:
    submitter = TaxFormSubmitter(SubmitBackend().client())
    source = AdditionalIncomeSource(
        source="Freelance",
        amount="100",
        documents=[UploadedDocument(name="1099.pdf", category="additional_income")],
    )
    form = TaxFormData(
        social_security_number="123-45-6789",
        w2_forms=[_completed(), UploadedDocument(name="bad.pdf", category="w2Forms", status="error")],
        additional_income_sources=[source],
    )

    result = submitter.validate_form_data(form)

    assert result.errors == ["Please wait for 2 document(s) to finish uploading"]
    assert len(TaxFormSubmitter.get_incomplete_uploads(form)) == 2


def test_payload_carries_only_submittable_documents_and_complete_dependents() -> None:
    submitter = TaxFormSubmitter(SubmitBackend().client())
    source = AdditionalIncomeSource(
        source="Rental",
        amount="900",
        documents=[_completed("lease.pdf", "additional_income")],
    )
    form = TaxFormData(
        social_security_number="123-45-6789",
        w2_forms=[_completed(), UploadedDocument(name="half.pdf", category="w2Forms")],
        additional_income_sources=[source],
    )
    dependents = [Dependent(name="Sam", age="4", relationship="child"), Dependent(name="Kim")]

    payload = submitter.build_payload(form, dependents)
    body = payload.model_dump(mode="json", by_alias=True)

    assert [doc["name"] for doc in body["documents"]] == ["w2.pdf", "lease.pdf"]
    assert [dep["name"] for dep in body["dependents"]] == ["Sam"]
    assert body["socialSecurityNumber"] == "123-45-6789"
    assert body["formType"] == "1040"
    assert body["filingStatus"] == "single"
    assert isinstance(body["taxYear"], int)
    assert body["additionalIncomeSources"][0]["source"] == "Rental"


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (BackendError("Network error: Cannot reach server."), NETWORK_FAILURE_MESSAGE),
        (BackendError("Token expired", status_code=401), AUTH_FAILURE_MESSAGE),
        (RuntimeError("Authentication token missing"), AUTH_FAILURE_MESSAGE),
        (RuntimeError("Network timeout"), NETWORK_FAILURE_MESSAGE),
        (BackendError("SSN already used", status_code=409), "SSN already used"),
        (RuntimeError(""), GENERIC_FAILURE_MESSAGE),
    ],
)
def test_describe_submission_error(error: Exception, expected: str) -> None:
    assert describe_submission_error(error) == expected


@pytest.mark.asyncio
async def test_workflow_submits_and_clears_draft(
    session: AuthSession, bus: EventBus, recorder_factory
) -> None:
    recorder = recorder_factory(SubmissionSucceeded)
    backend = SubmitBackend()
    triggers = FakeTriggers()
    persistence = MemoryPersistence()
    wizard = _wizard(session, bus, persistence)
    await wizard.load()
    wizard.update_form_data("socialSecurityNumber", "123-45-6789")
    wizard.form_data.w2_forms.append(_completed())
    wizard.update_number_of_dependents("1")
    wizard.update_dependent(wizard.dependents[0].id, "name", "Sam")
    wizard.update_dependent(wizard.dependents[0].id, "age", "4")
    wizard.update_dependent(wizard.dependents[0].id, "relationship", "child")
    wizard.go_to_step(5)

    workflow = SubmissionWorkflow(TaxFormSubmitter(backend.client()), session, bus, triggers)
    outcome = await workflow.submit(wizard)

    assert outcome.submitted is True
    assert outcome.title == "Success!"
    assert "Form ID: 42" in outcome.message
    assert "Documents: 1" in outcome.message
    request = backend.requests[0]
    assert request.url.path == "/tax-forms/submit"
    assert request.headers["Authorization"] == "Bearer token-1"
    sent = json.loads(request.content)
    assert sent["dependents"][0]["relationship"] == "child"

    assert wizard.step == 1
    assert wizard.form_data == TaxFormData()
    assert wizard.dependents == []
    assert wizard.save_pending is False
    assert persistence.cleared == ["user-1"]
    assert triggers.fired == ["formSubmitted"]
    assert recorder.events == [
        SubmissionSucceeded(tax_form_id="42", document_count=1, dependent_count=1)
    ]
    assert workflow.is_submitting is False


@pytest.mark.asyncio
async def test_workflow_requires_session(bus: EventBus) -> None:
    backend = SubmitBackend()
    wizard = _wizard(AuthSession(), bus, MemoryPersistence())
    workflow = SubmissionWorkflow(TaxFormSubmitter(backend.client()), AuthSession(), bus)

    outcome = await workflow.submit(wizard)

    assert outcome.submitted is False
    assert outcome.title == "Authentication Required"
    assert backend.requests == []


@pytest.mark.asyncio
async def test_workflow_reports_validation_errors(session: AuthSession, bus: EventBus) -> None:
    backend = SubmitBackend()
    wizard = _wizard(session, bus, MemoryPersistence())
    workflow = SubmissionWorkflow(TaxFormSubmitter(backend.client()), session, bus)

    outcome = await workflow.submit(wizard)

    assert outcome.title == "Validation Error"
    assert outcome.message == (
        "Social Security Number is required\n"
        "At least one document must be uploaded and completed"
    )
    assert backend.requests == []


@pytest.mark.asyncio
async def test_workflow_refuses_while_uploads_are_active(session: AuthSession, bus: EventBus) -> None:
    backend = SubmitBackend()
    wizard = _wizard(session, bus, MemoryPersistence())
    wizard.form_data.social_security_number = "123-45-6789"
    wizard.form_data.w2_forms.append(_completed())
    wizard.uploads.active_uploads = 1
    workflow = SubmissionWorkflow(TaxFormSubmitter(backend.client()), session, bus)

    outcome = await workflow.submit(wizard)

    assert outcome.title == "Upload in Progress"
    assert backend.requests == []


@pytest.mark.asyncio
async def test_backend_failure_keeps_form_and_publishes(
    session: AuthSession, bus: EventBus, recorder_factory
) -> None:
    recorder = recorder_factory(SubmissionFailed)
    backend = SubmitBackend(status_code=400, body={"error": "Missing W-2 for employer"})
    persistence = MemoryPersistence()
    wizard = _wizard(session, bus, persistence)
    wizard.form_data.social_security_number = "123-45-6789"
    wizard.form_data.w2_forms.append(_completed())
    workflow = SubmissionWorkflow(TaxFormSubmitter(backend.client()), session, bus, FakeTriggers())

    outcome = await workflow.submit(wizard)

    assert outcome.submitted is False
    assert outcome.title == "Submission Error"
    assert outcome.message == "Missing W-2 for employer"
    assert wizard.form_data.social_security_number == "123-45-6789"
    assert persistence.cleared == []
    assert recorder.events == [SubmissionFailed(message="Missing W-2 for employer")]


@pytest.mark.asyncio
async def test_history_and_details_pass_through(session: AuthSession) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/tax-forms/history":
            return httpx.Response(
                200, json={"success": True, "data": [{"id": 7, "status": "submitted"}]}
            )
        return httpx.Response(200, json={"success": True, "data": {"id": "7", "status": "approved"}})

    client = BackendClient(ApiSettings(base_url="https://backend.test"), transport=httpx.MockTransport(handler))
    submitter = TaxFormSubmitter(client)

    history = await submitter.get_tax_form_history("token-1")
    details = await submitter.get_tax_form_details("7", "token-1")

    assert history.data[0].id == "7"
    assert details == {"id": "7", "status": "approved"}

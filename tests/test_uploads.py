try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import asyncio

import pytest

from taxease.clients import TransferError
from taxease.core.events import EventBus, UploadFailed
from taxease.schemas import (
    AdditionalIncomeSource,
    PickedFile,
    TaxFormData,
    TransferResult,
    UploadedDocument,
)
from taxease.services import AuthSession, NotAuthenticatedError, TaxFormSubmitter, UploadCoordinator


class StubGateway:
    def __init__(self, *, fail_with: Exception | None = None, delete_error: Exception | None = None) -> None:
        self.fail_with = fail_with
        self.delete_error = delete_error
        self.release = asyncio.Event()
        self.release.set()
        self.blockers: dict[str, asyncio.Event] = {}
        self.uploads: list[dict] = []
        self.deleted: list[str] = []
        self.seen_states: list[tuple[str, int]] = []

    async def upload(self, file, *, user_id, category, token, on_progress=None):
        self.uploads.append({"name": file.name, "user_id": user_id, "category": category, "token": token})
        if on_progress is not None:
            on_progress(25)
            on_progress(150)
        await self.blockers.get(category, self.release).wait()
        if self.fail_with is not None:
            raise self.fail_with
        return TransferResult(remote_path=f"users/{user_id}/{file.name}", public_url=f"https://storage.test/{file.name}")

    async def delete(self, remote_path, *, token=None):
        self.deleted.append(remote_path)
        if self.delete_error is not None:
            raise self.delete_error
        return True


def _coordinator(gateway: StubGateway, bus: EventBus, session: AuthSession, form: TaxFormData):
    changes: list[int] = []
    coordinator = UploadCoordinator(
        gateway, bus, session, lambda: form, on_change=lambda: changes.append(1)
    )
    return coordinator, changes


@pytest.mark.asyncio
async def test_successful_upload_completes_document(
    picked_file: PickedFile, bus: EventBus, session: AuthSession
) -> None:
    form = TaxFormData()
    gateway = StubGateway()
    gateway.release.clear()
    coordinator, changes = _coordinator(gateway, bus, session, form)

    task = asyncio.create_task(coordinator.upload_document(picked_file, "w2Forms"))
    await asyncio.sleep(0)

    assert len(form.w2_forms) == 1
    pending = form.w2_forms[0]
    assert pending.status == "uploading"
    assert pending.remote_path is None
    assert coordinator.is_uploading is True

    gateway.release.set()
    document = await task

    assert document is pending
    assert document.status == "completed"
    assert document.progress_percent == 100
    assert document.remote_path == "users/user-1/w2.pdf"
    assert document.public_url == "https://storage.test/w2.pdf"
    assert document.preview_uri == picked_file.uri
    assert document.is_image is False
    assert coordinator.is_uploading is False
    assert gateway.uploads == [
        {"name": "w2.pdf", "user_id": "user-1", "category": "w2Forms", "token": "token-1"}
    ]
    assert changes
    assert TaxFormSubmitter.prepare_documents_for_submission(form) == [document]


@pytest.mark.asyncio
async def test_progress_is_clamped(picked_file: PickedFile, bus: EventBus, session: AuthSession) -> None:
    form = TaxFormData()
    gateway = StubGateway()
    gateway.release.clear()
    coordinator, _ = _coordinator(gateway, bus, session, form)

    task = asyncio.create_task(coordinator.upload_document(picked_file, "medical"))
    await asyncio.sleep(0)

    assert form.medical_documents[0].progress_percent == 100
    gateway.release.set()
    await task


@pytest.mark.asyncio
async def test_failed_upload_keeps_document_in_error_state(
    picked_file: PickedFile, bus: EventBus, session: AuthSession, recorder_factory
) -> None:
    recorder = recorder_factory(UploadFailed)
    form = TaxFormData()
    gateway = StubGateway(fail_with=TransferError("Server error (500 Internal Server Error).", kind="server"))
    coordinator, _ = _coordinator(gateway, bus, session, form)

    document = await coordinator.upload_document(picked_file, "w2Forms")

    assert form.w2_forms == [document]
    assert document.status == "error"
    assert document.progress_percent == 0
    assert document.remote_path is None
    assert document.public_url is None
    assert coordinator.is_uploading is False
    assert recorder.events == [
        UploadFailed(
            document_id=document.id,
            category="w2Forms",
            message="Server error (500 Internal Server Error).",
        )
    ]
    assert TaxFormSubmitter.prepare_documents_for_submission(form) == []


@pytest.mark.asyncio
async def test_unexpected_gateway_error_settles_document(
    picked_file: PickedFile, bus: EventBus, session: AuthSession, recorder_factory
) -> None:
    recorder = recorder_factory(UploadFailed)
    form = TaxFormData()
    gateway = StubGateway(fail_with=ValueError("storage path missing"))
    coordinator, _ = _coordinator(gateway, bus, session, form)

    document = await coordinator.upload_document(picked_file, "education")

    assert document.status == "error"
    assert document.progress_percent == 0
    assert coordinator.active_uploads == 0
    assert [event.message for event in recorder.events] == ["storage path missing"]


@pytest.mark.asyncio
async def test_upload_requires_authenticated_user(
    picked_file: PickedFile, bus: EventBus
) -> None:
    form = TaxFormData()
    coordinator, _ = _coordinator(StubGateway(), bus, AuthSession(), form)

    with pytest.raises(NotAuthenticatedError):
        await coordinator.upload_document(picked_file, "w2Forms")
    with pytest.raises(NotAuthenticatedError):
        await coordinator.upload_income_source_document(picked_file, "missing")

    assert list(form.iter_documents()) == []


@pytest.mark.asyncio
async def test_unknown_category_is_dropped(picked_file: PickedFile, bus: EventBus, session: AuthSession) -> None:
    form = TaxFormData()
    gateway = StubGateway()
    coordinator, _ = _coordinator(gateway, bus, session, form)

    assert await coordinator.upload_document(picked_file, "crypto") is None
    assert gateway.uploads == []
    assert list(form.iter_documents()) == []


@pytest.mark.asyncio
async def test_income_source_upload_and_delete(
    tmp_path, bus: EventBus, session: AuthSession
) -> None:
    image = tmp_path / "receipt.PNG"
    image.write_bytes(b"\x89PNG" + b"0" * 60)
    picked = PickedFile(uri=str(image), name="receipt.PNG", size=64)
    source = AdditionalIncomeSource(source="Freelance", amount="500")
    form = TaxFormData(additional_income_sources=[source])
    gateway = StubGateway()
    coordinator, _ = _coordinator(gateway, bus, session, form)

    document = await coordinator.upload_income_source_document(picked, source.id)

    assert source.documents == [document]
    assert document.category == "additional_income"
    assert document.is_image is True
    assert gateway.uploads[0]["category"] == "additional_income"
    assert document.preview_uri == "https://storage.test/receipt.PNG"
    assert await coordinator.upload_income_source_document(picked, "gone") is None

    assert await coordinator.delete_income_source_document(document.id, source.id) is True
    assert source.documents == []
    assert gateway.deleted == ["users/user-1/receipt.PNG"]


@pytest.mark.asyncio
async def test_delete_proceeds_when_remote_delete_fails(bus: EventBus, session: AuthSession) -> None:
    stored = UploadedDocument(
        name="id.jpg",
        category="personalId",
        status="completed",
        remote_path="users/user-1/id.jpg",
        public_url="https://storage.test/id.jpg",
    )
    local_only = UploadedDocument(name="draft.pdf", category="personalId", status="error")
    form = TaxFormData(personal_id_documents=[stored, local_only])
    gateway = StubGateway(delete_error=TransferError("Delete failed: 500"))
    coordinator, _ = _coordinator(gateway, bus, session, form)

    assert await coordinator.delete_document(stored.id, "personalId") is True
    assert await coordinator.delete_document(local_only.id, "personalId") is True
    assert await coordinator.delete_document("missing", "personalId") is False

    assert form.personal_id_documents == []
    assert gateway.deleted == ["users/user-1/id.jpg"]


@pytest.mark.asyncio
async def test_concurrent_uploads_keep_flag_until_last_settles(
    picked_file: PickedFile, bus: EventBus, session: AuthSession
) -> None:
    form = TaxFormData()
    slow = StubGateway()
    slow.blockers = {"w2Forms": asyncio.Event(), "education": asyncio.Event()}
    coordinator, _ = _coordinator(slow, bus, session, form)

    first = asyncio.create_task(coordinator.upload_document(picked_file, "w2Forms"))
    second = asyncio.create_task(coordinator.upload_document(picked_file, "education"))
    await asyncio.sleep(0)
    assert coordinator.active_uploads == 2

    slow.blockers["w2Forms"].set()
    await first
    assert coordinator.active_uploads == 1
    assert coordinator.is_uploading is True

    slow.blockers["education"].set()
    await second

    assert coordinator.active_uploads == 0
    assert coordinator.is_uploading is False


@pytest.mark.asyncio
async def test_delete_removes_document_on_unexpected_gateway_error(
    bus: EventBus, session: AuthSession
) -> None:
    stored = UploadedDocument(
        name="1099.pdf",
        category="w2Forms",
        status="completed",
        remote_path="users/user-1/1099.pdf",
    )
    form = TaxFormData(w2_forms=[stored])
    gateway = StubGateway(delete_error=RuntimeError("storage offline"))
    coordinator, changes = _coordinator(gateway, bus, session, form)

    assert await coordinator.delete_document(stored.id, "w2Forms") is True

    assert form.w2_forms == []
    assert gateway.deleted == ["users/user-1/1099.pdf"]
    assert changes


@pytest.mark.asyncio
async def test_preview_skips_unloadable_local_uri(bus: EventBus, session: AuthSession) -> None:
    form = TaxFormData()
    gateway = StubGateway()
    gateway.release.clear()
    coordinator, _ = _coordinator(gateway, bus, session, form)
    picked = PickedFile(uri="/sdcard/DCIM/id.jpg", name="id.jpg", mime_type="image/jpeg", size=2048)

    task = asyncio.create_task(coordinator.upload_document(picked, "personalId"))
    await asyncio.sleep(0)
    assert form.personal_id_documents[0].preview_uri is None

    gateway.release.set()
    document = await task

    assert document.local_uri == "/sdcard/DCIM/id.jpg"
    assert document.preview_uri == "https://storage.test/id.jpg"

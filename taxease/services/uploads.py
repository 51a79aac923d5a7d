"""
Upload coordinator for wizard documents.

Each upload is a small state machine on one ``UploadedDocument``:
``uploading`` until the transfer gateway settles, then ``completed`` or
``error``. Documents are located through a slot accessor that returns the
owning list, so fixed categories and income-source lists share one code path.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from taxease.clients import TransferError, TransferGateway
from taxease.core.events import EventBus, UploadFailed
from taxease.schemas import (
    INCOME_SOURCE_CATEGORY,
    PickedFile,
    TaxFormData,
    UploadedDocument,
)
from taxease.schemas.tax_form import is_image_file
from taxease.services.session import AuthSession
from taxease.utils.files import format_file_size, is_valid_image_uri

logger = logging.getLogger(__name__)

DocumentSlot = Callable[[], Optional[List[UploadedDocument]]]

UPLOAD_FAILED_FALLBACK = "Failed to upload document. Please try again."


def _find(documents: Optional[List[UploadedDocument]], document_id: str) -> Optional[UploadedDocument]:
    for document in documents or []:
        if document.id == document_id:
            return document
    return None


def _preview_uri(*candidates: Optional[str]) -> Optional[str]:
    for uri in candidates:
        if uri and is_valid_image_uri(uri):
            return uri
    return None


class UploadCoordinator:
    """Runs document transfers and writes their progress back into the form."""

    def __init__(
        self,
        gateway: TransferGateway,
        bus: EventBus,
        session: AuthSession,
        form_provider: Callable[[], TaxFormData],
        *,
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        self._gateway = gateway
        self._bus = bus
        self._session = session
        self._form = form_provider
        self._on_change = on_change
        self.active_uploads = 0

    @property
    def is_uploading(self) -> bool:
        return self.active_uploads > 0

    def _category_slot(self, category: str) -> DocumentSlot:
        return lambda: self._form().documents_for(category)

    def _income_source_slot(self, income_source_id: str) -> DocumentSlot:
        def slot() -> Optional[List[UploadedDocument]]:
            source = self._form().income_source(income_source_id)
            return source.documents if source is not None else None

        return slot

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    async def upload_document(
        self, file: PickedFile, category: str
    ) -> Optional[UploadedDocument]:
        """Upload into one of the fixed categories; unknown categories are dropped."""
        user_id = self._session.require_user_id()
        slot = self._category_slot(category)
        if slot() is None:
            logger.warning("Ignoring upload for unknown category", extra={"category": category})
            return None
        return await self._run(file, category, slot, user_id)

    async def upload_income_source_document(
        self, file: PickedFile, income_source_id: str
    ) -> Optional[UploadedDocument]:
        user_id = self._session.require_user_id()
        slot = self._income_source_slot(income_source_id)
        if slot() is None:
            logger.warning(
                "Ignoring upload for missing income source",
                extra={"income_source_id": income_source_id},
            )
            return None
        return await self._run(file, INCOME_SOURCE_CATEGORY, slot, user_id)

    async def _run(
        self, file: PickedFile, category: str, slot: DocumentSlot, user_id: str
    ) -> UploadedDocument:
        document = UploadedDocument(
            name=file.name,
            mime_type=file.mime_type,
            size_bytes=file.size,
            category=category,
            local_uri=file.uri,
            preview_uri=_preview_uri(file.uri),
            is_image=is_image_file(file.mime_type, file.name),
        )
        slot().append(document)
        self._changed()

        def on_progress(percent: int) -> None:
            current = _find(slot(), document.id)
            if current is None:
                return
            current.progress_percent = max(0, min(100, int(percent)))
            self._changed()

        self.active_uploads += 1
        logger.info(
            "Upload started",
            extra={
                "document_id": document.id,
                "category": category,
                "user_id": user_id,
                "size": format_file_size(file.size),
            },
        )
        try:
            result = await self._gateway.upload(
                file,
                user_id=user_id,
                category=category,
                token=self._session.token,
                on_progress=on_progress,
            )
        except Exception as exc:
            message = str(exc) or UPLOAD_FAILED_FALLBACK
            logger.warning(
                "Upload failed",
                extra={"document_id": document.id, "category": category, "error": message},
                exc_info=not isinstance(exc, (TransferError, OSError)),
            )
            current = _find(slot(), document.id) or document
            current.status = "error"
            current.progress_percent = 0
            self._changed()
            await self._bus.publish(
                UploadFailed(document_id=document.id, category=category, message=message)
            )
            return current
        finally:
            self.active_uploads -= 1

        current = _find(slot(), document.id) or document
        current.status = "completed"
        current.progress_percent = 100
        current.remote_path = result.remote_path
        current.public_url = result.public_url
        current.preview_uri = (
            _preview_uri(current.local_uri, result.public_url) or current.preview_uri
        )
        self._changed()
        logger.info("Upload completed", extra={"document_id": document.id, "category": category})
        return current

    async def delete_document(self, document_id: str, category: str) -> bool:
        return await self._delete(document_id, self._category_slot(category))

    async def delete_income_source_document(
        self, document_id: str, income_source_id: str
    ) -> bool:
        return await self._delete(document_id, self._income_source_slot(income_source_id))

    async def _delete(self, document_id: str, slot: DocumentSlot) -> bool:
        document = _find(slot(), document_id)
        if document is None:
            return False
        if document.remote_path:
            try:
                await self._gateway.delete(document.remote_path, token=self._session.token)
            except Exception:
                logger.warning(
                    "Remote delete failed; removing locally",
                    extra={"document_id": document_id, "remote_path": document.remote_path},
                    exc_info=True,
                )
        documents = slot()
        if documents is not None:
            documents[:] = [doc for doc in documents if doc.id != document_id]
        self._changed()
        return True


__all__ = ["UploadCoordinator", "UPLOAD_FAILED_FALLBACK"]

"""Document transfer gateway: moves picked files to and from remote object storage.

Uploads go through the backend, which owns the storage bucket credentials.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, BinaryIO, Callable, Dict, Optional, Protocol
from urllib.parse import unquote, urlparse

import httpx
from pydantic import ValidationError

from taxease.core.config import ApiSettings
from taxease.schemas import PickedFile, TransferResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


class TransferError(Exception):
    """Raised when an upload or delete fails; ``kind`` drives the user-facing wording."""

    def __init__(
        self, message: str, *, kind: str = "server", status_code: Optional[int] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status_code = status_code


class TransferGateway(Protocol):
    async def upload(
        self,
        file: PickedFile,
        *,
        user_id: str,
        category: str,
        token: Optional[str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> TransferResult: ...

    async def delete(self, remote_path: str, *, token: Optional[str] = None) -> bool: ...


class _ProgressReader:
    """File wrapper that reports the share of bytes handed to the HTTP stream."""

    def __init__(
        self, handle: BinaryIO, total: int, on_progress: Optional[ProgressCallback]
    ) -> None:
        self._handle = handle
        self._total = total
        self._on_progress = on_progress
        self._sent = 0
        self._last_reported = -1

    def read(self, size: int = -1) -> bytes:
        chunk = self._handle.read(size)
        self._sent += len(chunk)
        self._report()
        return chunk

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        position = self._handle.seek(offset, whence)
        self._sent = position
        return position

    def tell(self) -> int:
        return self._handle.tell()

    def fileno(self) -> int:
        return self._handle.fileno()

    def _report(self) -> None:
        if self._on_progress is None or self._total <= 0:
            return
        # Hold back 100 until the backend confirms the object was stored.
        percent = min(99, int(self._sent * 100 / self._total))
        if percent > self._last_reported:
            self._last_reported = percent
            self._on_progress(percent)


def resolve_local_path(uri: str) -> Path:
    """Turn a ``file://`` URI or a plain path into a filesystem path."""
    parsed = urlparse(uri)
    if parsed.scheme in ("", "file"):
        return Path(unquote(parsed.path if parsed.scheme else uri))
    raise TransferError(
        f"Cannot read files from '{parsed.scheme}://' locations.", kind="client"
    )


def _classify_failure(response: httpx.Response) -> TransferError:
    details = ""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        details = str(body.get("error") or body.get("message") or body.get("details") or "")

    status = response.status_code
    reason = response.reason_phrase
    if status == 401:
        message = f"Authentication failed ({status}). Please login again. {details}"
        kind = "auth"
    elif status == 403:
        message = f"Access denied ({status}). {details}"
        kind = "permission"
    elif 400 <= status < 500:
        message = f"Upload rejected ({status} {reason}). {details}"
        kind = "client"
    else:
        message = f"Server error ({status} {reason}). {details}"
        kind = "server"
    return TransferError(message.strip(), kind=kind, status_code=status)


class BackendTransferGateway:
    """Upload through ``POST /upload/document`` and delete through ``DELETE /upload/delete``."""

    def __init__(
        self,
        settings: ApiSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    async def upload(
        self,
        file: PickedFile,
        *,
        user_id: str,
        category: str,
        token: Optional[str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> TransferResult:
        path = resolve_local_path(file.uri)
        if not path.is_file():
            raise TransferError(f"File not found: {file.name}", kind="client")

        total = path.stat().st_size or file.size
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        logger.info(
            "Uploading document",
            extra={"category": category, "file_name": file.name, "size": total},
        )

        try:
            with path.open("rb") as handle:
                reader = _ProgressReader(handle, total, on_progress)
                async with self._client(self._settings.upload_timeout_seconds) as client:
                    response = await client.post(
                        self._settings.url("/upload/document"),
                        headers=headers,
                        data={"userId": user_id, "category": category},
                        files={"file": (file.name, reader, file.mime_type)},
                    )
        except httpx.TimeoutException as exc:
            raise TransferError(
                "Upload timeout: File is too large or connection is too slow. "
                "Please try a smaller file.",
                kind="timeout",
            ) from exc
        except httpx.TransportError as exc:
            raise TransferError(
                "Network error: Cannot reach server. Please check your internet "
                "connection.",
                kind="network",
            ) from exc

        if response.is_error:
            raise _classify_failure(response)

        try:
            payload: Dict[str, Any] = response.json()
        except ValueError as exc:
            raise TransferError("Upload response was not valid JSON.") from exc
        if not isinstance(payload, dict):
            raise TransferError("Upload response missing storage path", kind="server")

        try:
            result = TransferResult.model_validate(
                {
                    "size": file.size or total,
                    "contentType": file.mime_type,
                    **payload,
                }
            )
        except ValidationError as exc:
            raise TransferError("Upload response missing storage path", kind="server") from exc
        if on_progress is not None:
            on_progress(100)
        return result

    async def delete(self, remote_path: str, *, token: Optional[str] = None) -> bool:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            async with self._client(self._settings.timeout_seconds) as client:
                response = await client.request(
                    "DELETE",
                    self._settings.url("/upload/delete"),
                    headers=headers,
                    json={"gcsPath": remote_path},
                )
        except httpx.TransportError as exc:
            raise TransferError("Delete failed: backend unreachable.", kind="network") from exc
        if response.is_error:
            raise TransferError(
                f"Delete failed: {response.status_code}",
                status_code=response.status_code,
            )
        return True


__all__ = [
    "BackendTransferGateway",
    "ProgressCallback",
    "TransferError",
    "TransferGateway",
    "resolve_local_path",
]

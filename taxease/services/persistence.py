"""
Durable wizard progress and admin-poller markers.

Wizard keys are namespaced by user id so two accounts on one device never see
each other's drafts. Read failures are logged and come back as defaults; write
failures are logged and reported as ``False``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import TypeAdapter

from taxease.clients import SQLiteKeyValueStore
from taxease.schemas import AdminDocument, Dependent, TaxFormData, WizardSnapshot

logger = logging.getLogger(__name__)

FORM_VERSION = "1.0.0"

_DEPENDENTS_ADAPTER = TypeAdapter(List[Dependent])
_ADMIN_DOCUMENTS_ADAPTER = TypeAdapter(List[AdminDocument])


def form_data_key(user_id: str) -> str:
    return f"tax_form_data_{user_id}"


def dependents_key(user_id: str) -> str:
    return f"dependents_{user_id}"


def number_of_dependents_key(user_id: str) -> str:
    return f"number_of_dependents_{user_id}"


def current_step_key(user_id: str) -> str:
    return f"current_step_{user_id}"


def admin_status_key(form_id: str) -> str:
    return f"admin_status_{form_id}"


def admin_documents_key(form_id: str) -> str:
    return f"admin_documents_{form_id}"


class PersistenceService:
    """Async facade over the key-value store for everything the client core saves."""

    def __init__(self, store: SQLiteKeyValueStore) -> None:
        self._store = store

    async def _get(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._store.get_item, key)

    async def _set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._store.set_item, key, value)

    # Wizard parts

    async def save_tax_form_data(self, form_data: TaxFormData, user_id: str) -> bool:
        if not user_id:
            logger.error("User ID required for data isolation")
            return False
        payload = form_data.to_storage()
        payload.update(
            {
                "version": FORM_VERSION,
                "lastSaved": datetime.now(timezone.utc).isoformat(),
                "userId": user_id,
            }
        )
        try:
            await self._set(form_data_key(user_id), json.dumps(payload))
        except sqlite3.Error:
            logger.exception("Failed to save tax form data", extra={"user_id": user_id})
            return False
        return True

    async def load_tax_form_data(self, user_id: str) -> Optional[TaxFormData]:
        if not user_id:
            logger.error("User ID required for data isolation")
            return None
        try:
            raw = await self._get(form_data_key(user_id))
            if raw is None:
                return None
            payload: Dict[str, Any] = json.loads(raw)
            if payload.get("userId") != user_id:
                logger.error(
                    "User ID mismatch in saved form data", extra={"user_id": user_id}
                )
                return None
            if payload.get("version") != FORM_VERSION:
                logger.info(
                    "Saved form data has a different version",
                    extra={"version": payload.get("version")},
                )
            return TaxFormData.model_validate(payload)
        except (sqlite3.Error, ValueError):
            logger.exception("Failed to load tax form data", extra={"user_id": user_id})
            return None

    async def save_dependents(self, dependents: List[Dependent], user_id: str) -> bool:
        if not user_id:
            return False
        try:
            await self._set(
                dependents_key(user_id),
                _DEPENDENTS_ADAPTER.dump_json(dependents, by_alias=True).decode("utf-8"),
            )
        except sqlite3.Error:
            logger.exception("Failed to save dependents", extra={"user_id": user_id})
            return False
        return True

    async def load_dependents(self, user_id: str) -> List[Dependent]:
        if not user_id:
            return []
        try:
            raw = await self._get(dependents_key(user_id))
            if raw is None:
                return []
            return _DEPENDENTS_ADAPTER.validate_json(raw)
        except (sqlite3.Error, ValueError):
            logger.exception("Failed to load dependents", extra={"user_id": user_id})
            return []

    async def save_number_of_dependents(self, value: str, user_id: str) -> bool:
        if not user_id:
            return False
        try:
            await self._set(number_of_dependents_key(user_id), value)
        except sqlite3.Error:
            logger.exception(
                "Failed to save number of dependents", extra={"user_id": user_id}
            )
            return False
        return True

    async def load_number_of_dependents(self, user_id: str) -> str:
        if not user_id:
            return ""
        try:
            return await self._get(number_of_dependents_key(user_id)) or ""
        except sqlite3.Error:
            logger.exception(
                "Failed to load number of dependents", extra={"user_id": user_id}
            )
            return ""

    async def save_current_step(self, step: int, user_id: str) -> bool:
        if not user_id:
            return False
        try:
            await self._set(current_step_key(user_id), str(step))
        except sqlite3.Error:
            logger.exception("Failed to save current step", extra={"user_id": user_id})
            return False
        return True

    async def load_current_step(self, user_id: str) -> int:
        if not user_id:
            return 1
        try:
            raw = await self._get(current_step_key(user_id))
            return int(raw) if raw else 1
        except (sqlite3.Error, ValueError):
            logger.exception("Failed to load current step", extra={"user_id": user_id})
            return 1

    # Whole snapshot

    async def save_all_form_data(self, snapshot: WizardSnapshot, user_id: str) -> bool:
        if not user_id:
            logger.error("User ID required for data isolation")
            return False
        results = await asyncio.gather(
            self.save_tax_form_data(snapshot.form_data, user_id),
            self.save_dependents(snapshot.dependents, user_id),
            self.save_number_of_dependents(snapshot.number_of_dependents, user_id),
            self.save_current_step(snapshot.current_step, user_id),
        )
        return all(results)

    async def load_all_form_data(self, user_id: str) -> WizardSnapshot:
        if not user_id:
            logger.error("User ID required for data isolation")
            return WizardSnapshot()
        form_data, dependents, number_of_dependents, current_step = await asyncio.gather(
            self.load_tax_form_data(user_id),
            self.load_dependents(user_id),
            self.load_number_of_dependents(user_id),
            self.load_current_step(user_id),
        )
        return WizardSnapshot(
            form_data=form_data or TaxFormData(),
            dependents=dependents,
            number_of_dependents=number_of_dependents,
            current_step=current_step or 1,
        )

    async def clear_all_form_data(self, user_id: str) -> bool:
        if not user_id:
            return False
        keys = [
            form_data_key(user_id),
            dependents_key(user_id),
            number_of_dependents_key(user_id),
            current_step_key(user_id),
        ]
        try:
            await asyncio.to_thread(self._store.multi_remove, keys)
        except sqlite3.Error:
            logger.exception("Failed to clear form data", extra={"user_id": user_id})
            return False
        logger.info("Cleared saved form data", extra={"user_id": user_id})
        return True

    async def has_saved_form_data(self, user_id: str) -> bool:
        if not user_id:
            return False
        try:
            return await self._get(form_data_key(user_id)) is not None
        except sqlite3.Error:
            logger.exception("Failed to check saved form data", extra={"user_id": user_id})
            return False

    async def get_storage_info(self) -> Dict[str, Any]:
        try:
            keys = await asyncio.to_thread(self._store.get_all_keys)
        except sqlite3.Error:
            logger.exception("Failed to read storage keys")
            return {"total_keys": 0, "tax_form_keys": 0, "keys": []}
        tax_keys = [key for key in keys if key.startswith("tax_")]
        return {"total_keys": len(keys), "tax_form_keys": len(tax_keys), "keys": tax_keys}

    # Admin poller markers

    async def get_status_marker(self, form_id: str) -> Optional[str]:
        try:
            return await self._get(admin_status_key(form_id))
        except sqlite3.Error:
            logger.exception("Failed to read status marker", extra={"form_id": form_id})
            return None

    async def store_status_marker(self, form_id: str, status: str) -> None:
        try:
            await self._set(admin_status_key(form_id), status)
        except sqlite3.Error:
            logger.exception("Failed to store status marker", extra={"form_id": form_id})

    async def get_documents_marker(self, form_id: str) -> Optional[List[AdminDocument]]:
        """Last-seen admin documents; ``None`` when nothing was ever stored."""
        try:
            raw = await self._get(admin_documents_key(form_id))
            if raw is None:
                return None
            return _ADMIN_DOCUMENTS_ADAPTER.validate_json(raw)
        except (sqlite3.Error, ValueError):
            logger.exception(
                "Failed to read documents marker", extra={"form_id": form_id}
            )
            return None

    async def store_documents_marker(
        self, form_id: str, documents: List[AdminDocument]
    ) -> None:
        try:
            await self._set(
                admin_documents_key(form_id),
                _ADMIN_DOCUMENTS_ADAPTER.dump_json(documents, by_alias=True).decode("utf-8"),
            )
        except sqlite3.Error:
            logger.exception(
                "Failed to store documents marker", extra={"form_id": form_id}
            )

    async def clear_admin_markers(self, form_id: str) -> None:
        await asyncio.to_thread(
            self._store.multi_remove,
            [admin_status_key(form_id), admin_documents_key(form_id)],
        )


__all__ = [
    "FORM_VERSION",
    "PersistenceService",
    "admin_documents_key",
    "admin_status_key",
    "current_step_key",
    "dependents_key",
    "form_data_key",
    "number_of_dependents_key",
]

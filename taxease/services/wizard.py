"""
Tax wizard state machine.

Owns the step position, the form data, the dependents list and the
dependent count; loads them once per session and auto-saves changes after a
quiet period.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional

from taxease.clients import TransferGateway
from taxease.core.config import WizardSettings
from taxease.core.events import EventBus, WizardExited
from taxease.schemas import (
    AdditionalIncomeSource,
    Dependent,
    PickedFile,
    TaxFormData,
    UploadedDocument,
    WizardSnapshot,
)
from taxease.services.persistence import PersistenceService
from taxease.services.session import AuthSession
from taxease.services.uploads import UploadCoordinator
from taxease.utils.debounce import TrailingDebouncer

logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_DEPENDENT_FIELDS = ("name", "age", "relationship")
_INCOME_SOURCE_FIELDS = ("source", "amount", "description")


class LoadState(str, Enum):
    NOT_LOADED = "not_loaded"
    LOADING = "loading"
    LOADED = "loaded"


def parse_dependent_count(value: str) -> int:
    """Leading integer of ``value``; blank, unparsable or negative input is 0."""
    match = _LEADING_INT.match(value or "")
    if not match:
        return 0
    return max(0, int(match.group(1)))


class TaxWizard:
    """Five-step wizard with debounced persistence and composed upload handling."""

    def __init__(
        self,
        settings: WizardSettings,
        persistence: PersistenceService,
        session: AuthSession,
        bus: EventBus,
        gateway: TransferGateway,
        *,
        initial_step: Optional[int] = None,
    ) -> None:
        self.total_steps = settings.total_steps
        self._persistence = persistence
        self._session = session
        self._bus = bus
        self._initial_step = initial_step

        self.step = initial_step if initial_step and 1 <= initial_step <= self.total_steps else 1
        self.form_data = TaxFormData()
        self.dependents: List[Dependent] = []
        self.number_of_dependents = ""
        self.load_state = LoadState.NOT_LOADED
        self._autosave_user_id: Optional[str] = None

        self._debouncer = TrailingDebouncer(
            settings.autosave_delay_seconds, self._save, name="wizard-autosave"
        )
        self.uploads = UploadCoordinator(
            gateway,
            bus,
            session,
            lambda: self.form_data,
            on_change=self._touch,
        )

    # State

    @property
    def is_loaded(self) -> bool:
        return self.load_state is LoadState.LOADED

    @property
    def is_uploading(self) -> bool:
        return self.uploads.is_uploading

    @property
    def progress(self) -> float:
        return self.step / self.total_steps * 100

    @property
    def save_pending(self) -> bool:
        return self._debouncer.pending

    def snapshot(self) -> WizardSnapshot:
        return WizardSnapshot(
            form_data=self.form_data.model_copy(deep=True),
            dependents=[dependent.model_copy() for dependent in self.dependents],
            number_of_dependents=self.number_of_dependents,
            current_step=self.step,
        )

    # Loading and saving

    async def load(self) -> None:
        """Fetch the saved snapshot for the signed-in user once per session."""
        if self.load_state is not LoadState.NOT_LOADED:
            return
        user_id = self._session.user_id
        if not user_id:
            logger.info("No user ID available, skipping data load")
            self.load_state = LoadState.LOADED
            return

        self.load_state = LoadState.LOADING
        snapshot = await self._persistence.load_all_form_data(user_id)
        self.form_data = snapshot.form_data
        self.dependents = list(snapshot.dependents)
        self.number_of_dependents = snapshot.number_of_dependents
        if self._initial_step is None and 1 <= snapshot.current_step <= self.total_steps:
            self.step = snapshot.current_step
        self._autosave_user_id = user_id
        self.load_state = LoadState.LOADED
        logger.info("Wizard data loaded", extra={"user_id": user_id, "step": self.step})

    def _touch(self) -> None:
        if self.is_loaded and self._autosave_user_id:
            self._debouncer.trigger()

    async def _save(self) -> None:
        user_id = self._autosave_user_id
        if not user_id:
            return
        saved = await self._persistence.save_all_form_data(self.snapshot(), user_id)
        if not saved:
            logger.warning("Auto-save did not complete", extra={"user_id": user_id})

    async def flush(self) -> None:
        """Write a pending auto-save now instead of waiting for the delay."""
        await self._debouncer.flush()

    async def close(self) -> None:
        await self._debouncer.flush()
        self._autosave_user_id = None

    async def clear_saved_data(self) -> bool:
        user_id = self._session.user_id
        if not user_id:
            logger.error("No user ID available for clearing data")
            return False
        self._debouncer.cancel()
        return await self._persistence.clear_all_form_data(user_id)

    async def check_for_saved_data(self) -> bool:
        user_id = self._session.user_id
        if not user_id:
            return False
        return await self._persistence.has_saved_form_data(user_id)

    def reset(self) -> None:
        """Drop in-memory wizard state without scheduling a save."""
        self._debouncer.cancel()
        self.form_data = TaxFormData()
        self.dependents = []
        self.number_of_dependents = ""
        self.step = 1

    # Navigation

    def go_to_step(self, step: int) -> bool:
        if 1 <= step <= self.total_steps:
            self.step = step
            self._touch()
            return True
        return False

    async def next_step(self) -> bool:
        """Advance one step; at the last step the wizard is exited instead."""
        if self.step < self.total_steps:
            self.step += 1
            self._touch()
            return True
        await self._bus.publish(WizardExited(from_step=self.step))
        return False

    async def previous_step(self) -> bool:
        if self.step > 1:
            self.step -= 1
            self._touch()
            return True
        await self._bus.publish(WizardExited(from_step=self.step))
        return False

    # Form fields

    def update_form_data(self, field: str, value: Any) -> None:
        attribute = TaxFormData.resolve_field(field)
        if attribute is None:
            logger.warning("Ignoring update for unknown form field", extra={"field": field})
            return
        setattr(self.form_data, attribute, value)
        self._touch()

    def update_number_of_dependents(self, value: str) -> None:
        self.number_of_dependents = value
        count = parse_dependent_count(value)
        if count == 0:
            self.dependents = []
        elif count > len(self.dependents):
            self.dependents.extend(
                Dependent() for _ in range(count - len(self.dependents))
            )
        elif count < len(self.dependents):
            del self.dependents[count:]
        self._touch()

    def update_dependent(self, dependent_id: str, field: str, value: str) -> bool:
        if field not in _DEPENDENT_FIELDS:
            logger.warning("Ignoring update for unknown dependent field", extra={"field": field})
            return False
        for dependent in self.dependents:
            if dependent.id == dependent_id:
                setattr(dependent, field, value)
                self._touch()
                return True
        return False

    def remove_dependent(self, dependent_id: str) -> bool:
        remaining = [dep for dep in self.dependents if dep.id != dependent_id]
        if len(remaining) == len(self.dependents):
            return False
        self.dependents = remaining
        self._touch()
        return True

    # Additional income sources

    def add_income_source(
        self, source: str = "", amount: str = "", description: Optional[str] = None
    ) -> AdditionalIncomeSource:
        income_source = AdditionalIncomeSource(
            source=source, amount=amount, description=description
        )
        self.form_data.additional_income_sources.append(income_source)
        self._touch()
        return income_source

    def update_income_source(self, income_source_id: str, **changes: Any) -> bool:
        income_source = self.form_data.income_source(income_source_id)
        if income_source is None:
            return False
        for field, value in changes.items():
            if field in _INCOME_SOURCE_FIELDS:
                setattr(income_source, field, value)
        self._touch()
        return True

    def remove_income_source(self, income_source_id: str) -> bool:
        sources = self.form_data.additional_income_sources
        remaining = [source for source in sources if source.id != income_source_id]
        if len(remaining) == len(sources):
            return False
        self.form_data.additional_income_sources = remaining
        self._touch()
        return True

    @property
    def additional_income_total(self) -> Decimal:
        return sum(
            (source.countable_amount for source in self.form_data.additional_income_sources),
            Decimal("0"),
        )

    # Documents

    async def upload_document(
        self, file: PickedFile, category: str
    ) -> Optional[UploadedDocument]:
        return await self.uploads.upload_document(file, category)

    async def upload_income_source_document(
        self, file: PickedFile, income_source_id: str
    ) -> Optional[UploadedDocument]:
        return await self.uploads.upload_income_source_document(file, income_source_id)

    async def delete_document(self, document_id: str, category: str) -> bool:
        return await self.uploads.delete_document(document_id, category)

    async def delete_income_source_document(
        self, document_id: str, income_source_id: str
    ) -> bool:
        return await self.uploads.delete_income_source_document(
            document_id, income_source_id
        )


__all__ = ["LoadState", "TaxWizard", "parse_dependent_count"]

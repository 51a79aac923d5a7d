"""Pytest configuration shared across the suite."""

from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from pathlib import Path

import pytest

from taxease.clients import SQLiteKeyValueStore
from taxease.core.events import EventBus
from taxease.schemas import PickedFile
from taxease.services import AuthSession, PersistenceService


@pytest.fixture
def store(tmp_path: Path) -> SQLiteKeyValueStore:
    return SQLiteKeyValueStore(str(tmp_path / "state.db"))


@pytest.fixture
def persistence(store: SQLiteKeyValueStore) -> PersistenceService:
    return PersistenceService(store)


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def session() -> AuthSession:
    return AuthSession(user_id="user-1", token="token-1")


@pytest.fixture
def picked_file(tmp_path: Path) -> PickedFile:
    path = tmp_path / "w2.pdf"
    path.write_bytes(b"%PDF-1.4 " + b"x" * 991)
    return PickedFile(uri=path.as_uri(), name="w2.pdf", mime_type="application/pdf", size=1000)


class EventRecorder:
    """Collects every event of the subscribed types in publish order."""

    def __init__(self, bus: EventBus, *event_types: type) -> None:
        self.events: list[object] = []
        for event_type in event_types:
            bus.subscribe(event_type, self.events.append)

    def of_type(self, event_type: type) -> list:
        return [event for event in self.events if isinstance(event, event_type)]


@pytest.fixture
def recorder_factory(bus: EventBus):
    def factory(*event_types: type) -> EventRecorder:
        return EventRecorder(bus, *event_types)

    return factory


class RecordingPlatform:
    """Notification platform double that keeps every call it receives."""

    def __init__(self, *, deliver: bool = True) -> None:
        self.deliver = deliver
        self.sent: list[dict] = []
        self.scheduled: list[dict] = []
        self.cancelled = 0

    async def send_local_notification(self, title, body, data=None):
        self.sent.append({"title": title, "body": body, "data": data or {}})
        return f"local-{len(self.sent)}" if self.deliver else None

    async def schedule_notification(self, title, body, trigger, data=None):
        self.scheduled.append({"title": title, "body": body, "trigger": trigger, "data": data or {}})
        return f"scheduled-{len(self.scheduled)}" if self.deliver else None

    async def cancel_all_notifications(self):
        self.cancelled += 1
        return True


@pytest.fixture
def platform() -> RecordingPlatform:
    return RecordingPlatform()

"""
Typed in-process event bus.

Producers (upload coordinator, admin poller, submission workflow, trigger
registry) publish frozen event objects; consumers subscribe by event type.
"""

from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type, TypeVar, Union

logger = logging.getLogger(__name__)

E = TypeVar("E")
Handler = Callable[[Any], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class UploadFailed:
    """A document transfer was rejected; the UI shows an alert."""

    document_id: str
    category: str
    message: str


@dataclass(frozen=True)
class WizardExited:
    """Navigation left the wizard from its first or last step."""

    from_step: int


@dataclass(frozen=True)
class AdminStatusChanged:
    old_status: str
    new_status: str
    form_id: str


@dataclass(frozen=True)
class AdminDocumentUploaded:
    form_id: str
    document_id: str
    name: str
    category: str


@dataclass(frozen=True)
class NotificationRaised:
    """A notification that should appear in the in-app list."""

    title: str
    body: str
    type: str = "local"
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SubmissionSucceeded:
    tax_form_id: Optional[str]
    document_count: int
    dependent_count: int


@dataclass(frozen=True)
class SubmissionFailed:
    message: str


class EventBus:
    """Dispatch events to handlers registered for their exact type."""

    def __init__(self) -> None:
        self._handlers: Dict[type, List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: Type[E], handler: Handler) -> None:
        if handler not in self._handlers[event_type]:
            self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: type, handler: Handler) -> bool:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def handler_count(self, event_type: type) -> int:
        return len(self._handlers.get(event_type, []))

    async def publish(self, event: object) -> None:
        """Deliver ``event`` to every subscriber; a failing handler is only logged."""
        for handler in list(self._handlers.get(type(event), [])):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Event handler failed",
                    extra={"event_type": type(event).__name__},
                )


__all__ = [
    "AdminDocumentUploaded",
    "AdminStatusChanged",
    "EventBus",
    "NotificationRaised",
    "SubmissionFailed",
    "SubmissionSucceeded",
    "UploadFailed",
    "WizardExited",
]

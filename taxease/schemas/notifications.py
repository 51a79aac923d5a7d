"""In-app notification models."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Dict

from pydantic import BaseModel, Field


def _time_based_id() -> str:
    return str(time.time_ns())


class Notification(BaseModel):
    """A user-facing notification kept in the session's in-app list."""

    id: str = Field(default_factory=_time_based_id)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    read: bool = False
    title: str = ""
    body: str = ""
    type: str = "local"
    data: Dict[str, Any] = Field(default_factory=dict)


__all__ = ["Notification"]

"""Request bodies for the support, appointment and feedback endpoints."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SupportRequest(BaseModel):
    subject: str = Field(..., min_length=1)
    category: str = "general"
    message: str = Field(..., min_length=1)


class AppointmentRequest(BaseModel):
    """Consultation booking; ``date`` is ``YYYY-MM-DD`` and ``time`` a slot label."""

    model_config = ConfigDict(populate_by_name=True)

    appointment_type: str = Field(..., alias="appointmentType")
    date: str
    time: str
    notes: Optional[str] = ""


class FeedbackRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    feedback: str = ""
    category: str = "general"


__all__ = ["AppointmentRequest", "FeedbackRequest", "SupportRequest"]

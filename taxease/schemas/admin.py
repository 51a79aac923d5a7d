"""Models for the tax-form history records the admin poller diffs."""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DRAFT_RETURN_CATEGORY = "draft_return"
FINAL_RETURN_CATEGORY = "final_return"


def _coerce_identifier(value: Any) -> Any:
    if isinstance(value, int):
        return str(value)
    return value


class AdminDocument(BaseModel):
    """A document attached to a submitted form by backend staff."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    name: str = ""
    category: str = ""
    uploaded_at: Optional[str] = Field(None, alias="uploadedAt")

    normalize_id = field_validator("id", mode="before")(_coerce_identifier)

    @property
    def marker_key(self) -> tuple[str, Optional[str]]:
        return self.id, self.uploaded_at


class TaxFormRecord(BaseModel):
    """One entry from ``GET /tax-forms/history``; only what the diff needs is typed."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    status: Optional[str] = None
    admin_documents: List[AdminDocument] = Field(
        default_factory=list, alias="adminDocuments"
    )

    normalize_id = field_validator("id", mode="before")(_coerce_identifier)

    @field_validator("admin_documents", mode="before")
    @classmethod
    def none_as_empty(cls, value: Any) -> Any:
        return value or []


class FormHistoryResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    success: bool = False
    data: List[TaxFormRecord] = Field(default_factory=list)

    @field_validator("data", mode="before")
    @classmethod
    def none_as_empty(cls, value: Any) -> Any:
        return value or []


__all__ = [
    "AdminDocument",
    "DRAFT_RETURN_CATEGORY",
    "FINAL_RETURN_CATEGORY",
    "FormHistoryResponse",
    "TaxFormRecord",
]

"""
Pydantic models for the tax wizard form, its documents and the submission payload.

Attribute names are Python-style; aliases keep the camelCase field names the
backend and the persisted snapshots use.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterator, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

DocumentStatus = Literal["uploading", "completed", "error"]

_IMAGE_NAME_PATTERN = re.compile(r"\.(jpg|jpeg|png|gif|webp)$", re.IGNORECASE)

# Fixed category key -> TaxFormData attribute holding that category's documents.
DOCUMENT_CATEGORY_FIELDS: Dict[str, str] = {
    "previousYearTax": "previous_year_tax_documents",
    "w2Forms": "w2_forms",
    "additionalIncomeGeneral": "additional_income_general_documents",
    "medical": "medical_documents",
    "education": "education_documents",
    "dependentChildren": "dependent_children_documents",
    "homeownerDeduction": "homeowner_deduction_documents",
    "personalId": "personal_id_documents",
}

INCOME_SOURCE_CATEGORY = "additional_income"


def generate_local_id() -> str:
    return uuid4().hex[:12]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_image_file(mime_type: Optional[str], name: Optional[str]) -> bool:
    """Images are previewable; detected from the MIME type or the file extension."""
    if mime_type and mime_type.startswith("image/"):
        return True
    return bool(name and _IMAGE_NAME_PATTERN.search(name))


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PickedFile(_CamelModel):
    """A file chosen on the device, before any transfer happens."""

    uri: str
    name: str = Field(
        "Document", validation_alias=AliasChoices("name", "fileName")
    )
    mime_type: str = Field(
        "application/octet-stream",
        validation_alias=AliasChoices("mime_type", "mimeType", "type"),
    )
    size: int = Field(0, validation_alias=AliasChoices("size", "fileSize"))


class UploadedDocument(_CamelModel):
    """One user-selected file and its transfer state."""

    id: str = Field(default_factory=generate_local_id)
    name: str
    mime_type: str = Field("application/octet-stream", alias="type")
    size_bytes: int = Field(0, alias="size")
    status: DocumentStatus = "uploading"
    progress_percent: int = Field(0, alias="progress", ge=0, le=100)
    category: str
    local_uri: Optional[str] = Field(None, alias="uri")
    remote_path: Optional[str] = Field(None, alias="gcsPath")
    public_url: Optional[str] = Field(None, alias="publicUrl")
    preview_uri: Optional[str] = Field(None, alias="previewUrl")
    is_image: bool = Field(False, alias="isImage")
    created_at: datetime = Field(default_factory=_utcnow, alias="timestamp")

    @property
    def is_submittable(self) -> bool:
        return (
            self.status == "completed"
            and bool(self.remote_path)
            and bool(self.public_url)
        )


class Dependent(_CamelModel):
    id: str = Field(default_factory=generate_local_id)
    name: str = ""
    age: str = ""
    relationship: str = ""

    @property
    def is_complete(self) -> bool:
        return all(
            value.strip() for value in (self.name, self.age, self.relationship)
        )


class AdditionalIncomeSource(_CamelModel):
    """A user-declared income line item with its own supporting documents."""

    id: str = Field(default_factory=generate_local_id)
    source: str = ""
    amount: str = ""
    description: Optional[str] = None
    documents: List[UploadedDocument] = Field(default_factory=list)

    @property
    def countable_amount(self) -> Decimal:
        """Amount used in totals; blank, unparsable or negative values count as zero."""
        try:
            value = Decimal(self.amount.replace(",", "").replace("$", "").strip())
        except (InvalidOperation, AttributeError):
            return Decimal("0")
        if not value.is_finite() or value < 0:
            return Decimal("0")
        return value


class TaxFormData(_CamelModel):
    """The full wizard state collected across the five steps."""

    social_security_number: str = Field("", alias="socialSecurityNumber")
    previous_year_tax_documents: List[UploadedDocument] = Field(
        default_factory=list, alias="previousYearTaxDocuments"
    )
    w2_forms: List[UploadedDocument] = Field(default_factory=list, alias="w2Forms")
    has_additional_income: bool = Field(False, alias="hasAdditionalIncome")
    additional_income_sources: List[AdditionalIncomeSource] = Field(
        default_factory=list, alias="additionalIncomeSources"
    )
    additional_income_general_documents: List[UploadedDocument] = Field(
        default_factory=list, alias="additionalIncomeGeneralDocuments"
    )
    medical_documents: List[UploadedDocument] = Field(
        default_factory=list, alias="medicalDocuments"
    )
    education_documents: List[UploadedDocument] = Field(
        default_factory=list, alias="educationDocuments"
    )
    dependent_children_documents: List[UploadedDocument] = Field(
        default_factory=list, alias="dependentChildrenDocuments"
    )
    homeowner_deduction_documents: List[UploadedDocument] = Field(
        default_factory=list, alias="homeownerDeductionDocuments"
    )
    personal_id_documents: List[UploadedDocument] = Field(
        default_factory=list, alias="personalIdDocuments"
    )

    @classmethod
    def resolve_field(cls, field: str) -> Optional[str]:
        """Map either an attribute name or its camelCase alias to the attribute name."""
        if field in cls.model_fields:
            return field
        for name, info in cls.model_fields.items():
            if info.alias == field:
                return name
        return None

    def documents_for(self, category: str) -> Optional[List[UploadedDocument]]:
        field_name = DOCUMENT_CATEGORY_FIELDS.get(category)
        if field_name is None:
            return None
        return getattr(self, field_name)

    def income_source(self, income_source_id: str) -> Optional[AdditionalIncomeSource]:
        for source in self.additional_income_sources:
            if source.id == income_source_id:
                return source
        return None

    def iter_documents(self) -> Iterator[UploadedDocument]:
        """Every document: the eight fixed categories, then each income source's list."""
        for field_name in DOCUMENT_CATEGORY_FIELDS.values():
            yield from getattr(self, field_name)
        for source in self.additional_income_sources:
            yield from source.documents

    def to_storage(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class WizardSnapshot(_CamelModel):
    """Everything the wizard persists between sessions for one user."""

    form_data: TaxFormData = Field(default_factory=TaxFormData, alias="formData")
    dependents: List[Dependent] = Field(default_factory=list)
    number_of_dependents: str = Field("", alias="numberOfDependents")
    current_step: int = Field(1, alias="currentStep")


class TransferResult(_CamelModel):
    """What the transfer gateway reports for a finished upload."""

    remote_path: str = Field(..., alias="gcsPath")
    public_url: str = Field(..., alias="publicUrl")
    file_name: Optional[str] = Field(None, alias="fileName")
    size: int = 0
    content_type: Optional[str] = Field(None, alias="contentType")


class ValidationResult(_CamelModel):
    is_valid: bool = Field(..., alias="isValid")
    errors: List[str] = Field(default_factory=list)


class SubmissionPayload(_CamelModel):
    """Body posted to ``/tax-forms/submit``."""

    social_security_number: str = Field(..., alias="socialSecurityNumber")
    documents: List[UploadedDocument] = Field(default_factory=list)
    dependents: List[Dependent] = Field(default_factory=list)
    additional_income_sources: List[AdditionalIncomeSource] = Field(
        default_factory=list, alias="additionalIncomeSources"
    )
    form_type: str = Field("1040", alias="formType")
    tax_year: int = Field(default_factory=lambda: _utcnow().year, alias="taxYear")
    filing_status: str = Field("single", alias="filingStatus")


class SubmissionCounts(_CamelModel):
    document_count: int = Field(0, alias="documentCount")
    dependent_count: int = Field(0, alias="dependentCount")


class SubmissionResponse(_CamelModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    tax_form_id: Optional[Union[str, int]] = Field(None, alias="taxFormId")
    data: SubmissionCounts = Field(default_factory=SubmissionCounts)


__all__ = [
    "AdditionalIncomeSource",
    "DOCUMENT_CATEGORY_FIELDS",
    "Dependent",
    "DocumentStatus",
    "INCOME_SOURCE_CATEGORY",
    "PickedFile",
    "SubmissionCounts",
    "SubmissionPayload",
    "SubmissionResponse",
    "TaxFormData",
    "TransferResult",
    "UploadedDocument",
    "ValidationResult",
    "WizardSnapshot",
    "generate_local_id",
    "is_image_file",
]

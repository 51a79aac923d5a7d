"""Public schema exports."""

from .admin import (
    DRAFT_RETURN_CATEGORY,
    FINAL_RETURN_CATEGORY,
    AdminDocument,
    FormHistoryResponse,
    TaxFormRecord,
)
from .notifications import Notification
from .support import AppointmentRequest, FeedbackRequest, SupportRequest
from .tax_form import (
    DOCUMENT_CATEGORY_FIELDS,
    INCOME_SOURCE_CATEGORY,
    AdditionalIncomeSource,
    Dependent,
    PickedFile,
    SubmissionPayload,
    SubmissionResponse,
    TaxFormData,
    TransferResult,
    UploadedDocument,
    ValidationResult,
    WizardSnapshot,
)

__all__ = [
    "AdditionalIncomeSource",
    "AdminDocument",
    "AppointmentRequest",
    "DOCUMENT_CATEGORY_FIELDS",
    "DRAFT_RETURN_CATEGORY",
    "Dependent",
    "FINAL_RETURN_CATEGORY",
    "FeedbackRequest",
    "FormHistoryResponse",
    "INCOME_SOURCE_CATEGORY",
    "Notification",
    "PickedFile",
    "SubmissionPayload",
    "SubmissionResponse",
    "SupportRequest",
    "TaxFormData",
    "TaxFormRecord",
    "TransferResult",
    "UploadedDocument",
    "ValidationResult",
    "WizardSnapshot",
]

"""Service layer exports."""

from .admin_poller import AdminNotificationPoller
from .credentials import CredentialError, CredentialVault
from .notifications import NotificationCenter
from .persistence import PersistenceService
from .session import AuthSession, NotAuthenticatedError
from .submission import (
    SubmissionOutcome,
    SubmissionWorkflow,
    TaxFormSubmitter,
    describe_submission_error,
)
from .support import AppointmentService, FeedbackService, SupportService
from .triggers import NotificationTriggers
from .uploads import UploadCoordinator
from .wizard import LoadState, TaxWizard

__all__ = [
    "AdminNotificationPoller",
    "AppointmentService",
    "AuthSession",
    "CredentialError",
    "CredentialVault",
    "FeedbackService",
    "LoadState",
    "NotAuthenticatedError",
    "NotificationCenter",
    "NotificationTriggers",
    "PersistenceService",
    "SubmissionOutcome",
    "SubmissionWorkflow",
    "SupportService",
    "TaxFormSubmitter",
    "TaxWizard",
    "UploadCoordinator",
    "describe_submission_error",
]

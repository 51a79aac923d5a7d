"""Expose constructed client wrappers."""

from .backend import BackendClient, BackendError
from .notifier import LoggingNotificationPlatform, NotificationPlatform
from .sqlite_store import SQLiteKeyValueStore
from .transfer import BackendTransferGateway, TransferError, TransferGateway

__all__ = [
    "BackendClient",
    "BackendError",
    "BackendTransferGateway",
    "LoggingNotificationPlatform",
    "NotificationPlatform",
    "SQLiteKeyValueStore",
    "TransferError",
    "TransferGateway",
]

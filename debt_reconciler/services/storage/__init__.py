"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the persistent backend; the in-memory stores back tests.
"""

from debt_reconciler.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DebtStoreInterface,
    DuplicateError,
    NotFoundError,
    StorageError,
    UploadHistoryInterface,
)
from debt_reconciler.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsDebtStore,
    GoogleSheetsUploadHistory,
)
from debt_reconciler.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryDebtStore,
    InMemoryUploadHistory,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "DebtStoreInterface",
    "UploadHistoryInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsDebtStore",
    "GoogleSheetsUploadHistory",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryDebtStore",
    "InMemoryUploadHistory",
]

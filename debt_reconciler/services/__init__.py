"""Services package."""

from debt_reconciler.services.extraction import (
    CreditReportExtractor,
    ExtractionError,
    ExtractionFailedError,
    ProviderRateLimitedError,
)
from debt_reconciler.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DebtStoreInterface,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsDebtStore,
    GoogleSheetsUploadHistory,
    InMemoryAuditStorage,
    InMemoryDebtStore,
    InMemoryUploadHistory,
    NotFoundError,
    StorageError,
    UploadHistoryInterface,
)

__all__ = [
    # Extraction
    "CreditReportExtractor",
    "ExtractionError",
    "ExtractionFailedError",
    "ProviderRateLimitedError",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "DebtStoreInterface",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsDebtStore",
    "GoogleSheetsUploadHistory",
    "InMemoryAuditStorage",
    "InMemoryDebtStore",
    "InMemoryUploadHistory",
    "NotFoundError",
    "StorageError",
    "UploadHistoryInterface",
]

"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a hosted database later
2. Use in-memory storage for testing
3. Keep the reconciliation engine decoupled from storage implementation

The interface is intentionally small - it covers exactly what the
credit report flow needs: read the owner's debts, overwrite fields on one
debt, create one debt, and keep an upload history.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional
from uuid import UUID

from debt_reconciler.models.audit import AuditEvent
from debt_reconciler.models.debt import CreditReportUpload, NewDebt, TrackedDebt


class DebtStoreInterface(ABC):
    """
    Abstract interface for tracked debt storage.
    
    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """
    
    @abstractmethod
    async def list_debts(self, owner_id: str) -> list[TrackedDebt]:
        """
        List all tracked debts for an owner.
        
        The order is stable between calls; matching depends on it.
        """
        pass
    
    @abstractmethod
    async def get_debt(self, debt_id: UUID) -> Optional[TrackedDebt]:
        """Retrieve a debt by its ID, or None."""
        pass
    
    @abstractmethod
    async def update_debt(
        self,
        debt_id: UUID,
        updates: dict[str, Any],
    ) -> TrackedDebt:
        """
        Overwrite a partial set of fields on one debt.
        
        Args:
            debt_id: The debt to update
            updates: Field name -> new value (TrackedDebt field names)
            
        Returns:
            The updated debt
            
        Raises:
            NotFoundError: If the debt doesn't exist
            StorageError: If the write fails
        """
        pass
    
    @abstractmethod
    async def create_debt(self, owner_id: str, new_debt: NewDebt) -> TrackedDebt:
        """
        Create a tracked debt.
        
        Raises:
            StorageError: If the write fails
        """
        pass


class UploadHistoryInterface(ABC):
    """Abstract interface for credit report upload history."""
    
    @abstractmethod
    async def append_upload(self, upload: CreditReportUpload) -> CreditReportUpload:
        """Append one upload record."""
        pass
    
    @abstractmethod
    async def list_uploads(self, owner_id: str) -> list[CreditReportUpload]:
        """List an owner's uploads, newest first."""
        pass
    
    @abstractmethod
    async def increment_updates_applied(self, upload_id: UUID) -> int:
        """
        Add one to the upload's updates-applied counter.
        
        Not idempotent: a retried call counts twice.
        
        Returns:
            The new counter value
            
        Raises:
            NotFoundError: If the upload doesn't exist
        """
        pass
    
    @abstractmethod
    async def delete_upload(self, upload_id: UUID) -> bool:
        """Delete an upload record. Returns False if it did not exist."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.
    
    Audit logs are append-only - we never delete or modify them.
    """
    
    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Returns True if logged successfully."""
        pass
    
    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a correlation ID, in chronological order."""
        pass
    
    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass

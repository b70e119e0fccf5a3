"""
In-Memory Storage Implementation

Used by the test suite and for local runs without a spreadsheet.
Operations listed in `fail_on` raise StorageError, which lets callers
exercise persistence-failure paths.
"""

from typing import Any, Iterable, Optional
from uuid import UUID

from debt_reconciler.models.audit import AuditEvent
from debt_reconciler.models.debt import CreditReportUpload, NewDebt, TrackedDebt
from debt_reconciler.services.storage.interface import (
    AuditStorageInterface,
    DebtStoreInterface,
    DuplicateError,
    NotFoundError,
    StorageError,
    UploadHistoryInterface,
)


UPDATABLE_DEBT_FIELDS = {
    "name",
    "lender",
    "balance",
    "starting_balance",
    "minimum_payment",
    "planned_payment",
}


class _FailureInjection:
    def __init__(self, fail_on: Optional[Iterable[str]] = None):
        self.fail_on = set(fail_on or ())
    
    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise StorageError(f"Simulated failure: {operation}")


class InMemoryDebtStore(_FailureInjection, DebtStoreInterface):
    """Tracked debts held in a dict, in insertion order."""
    
    def __init__(
        self,
        debts: Optional[Iterable[TrackedDebt]] = None,
        fail_on: Optional[Iterable[str]] = None,
    ):
        super().__init__(fail_on)
        self._debts: dict[UUID, TrackedDebt] = {}
        self.update_calls: list[tuple[UUID, dict[str, Any]]] = []
        for debt in debts or ():
            self._debts[debt.id] = debt
    
    async def list_debts(self, owner_id: str) -> list[TrackedDebt]:
        self._check("list_debts")
        return [
            debt.model_copy()
            for debt in self._debts.values()
            if debt.owner_id in (None, owner_id)
        ]
    
    async def get_debt(self, debt_id: UUID) -> Optional[TrackedDebt]:
        debt = self._debts.get(debt_id)
        return debt.model_copy() if debt else None
    
    async def update_debt(
        self,
        debt_id: UUID,
        updates: dict[str, Any],
    ) -> TrackedDebt:
        self._check("update_debt")
        if debt_id not in self._debts:
            raise NotFoundError(f"Debt not found: {debt_id}")
        unknown = set(updates) - UPDATABLE_DEBT_FIELDS
        if unknown:
            raise StorageError(f"Cannot update fields: {sorted(unknown)}")
        
        self.update_calls.append((debt_id, dict(updates)))
        updated = self._debts[debt_id].model_copy(update=updates)
        self._debts[debt_id] = updated
        return updated.model_copy()
    
    async def create_debt(self, owner_id: str, new_debt: NewDebt) -> TrackedDebt:
        self._check("create_debt")
        debt = TrackedDebt(owner_id=owner_id, **new_debt.model_dump())
        self._debts[debt.id] = debt
        return debt.model_copy()


class InMemoryUploadHistory(_FailureInjection, UploadHistoryInterface):
    """Upload history held in a list."""
    
    def __init__(self, fail_on: Optional[Iterable[str]] = None):
        super().__init__(fail_on)
        self._uploads: list[CreditReportUpload] = []
    
    async def append_upload(self, upload: CreditReportUpload) -> CreditReportUpload:
        self._check("append_upload")
        if any(u.id == upload.id for u in self._uploads):
            raise DuplicateError(f"Upload already exists: {upload.id}")
        self._uploads.append(upload)
        return upload
    
    async def list_uploads(self, owner_id: str) -> list[CreditReportUpload]:
        uploads = [u for u in self._uploads if u.owner_id == owner_id]
        return sorted(uploads, key=lambda u: u.uploaded_at, reverse=True)
    
    async def increment_updates_applied(self, upload_id: UUID) -> int:
        self._check("increment_updates_applied")
        for upload in self._uploads:
            if upload.id == upload_id:
                upload.updates_applied += 1
                return upload.updates_applied
        raise NotFoundError(f"Upload not found: {upload_id}")
    
    async def delete_upload(self, upload_id: UUID) -> bool:
        self._check("delete_upload")
        before = len(self._uploads)
        self._uploads = [u for u in self._uploads if u.id != upload_id]
        return len(self._uploads) < before


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit events held in a list."""
    
    def __init__(self):
        self.events: list[AuditEvent] = []
    
    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True
    
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)
    
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]

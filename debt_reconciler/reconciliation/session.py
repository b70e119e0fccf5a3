"""
Reconciliation Session

Holds the discrepancies derived from one credit report upload and the
user-facing transitions on them.

States per discrepancy:

    pending --link_to--> linked --apply_selected--> linked (applied, frozen)
    pending --apply_selected--> linked (applied, frozen)
    matched, no differences --apply_selected--> linked (applied, no write)
    pending --add_as_new--> added        (unmatched only)
    pending --dismiss--> dismissed

Illegal calls raise InvalidTransitionError. Logic no-ops (nothing
selected, debt already taken, unknown field) come back as an
unsuccessful ActionResult. Store failures propagate as StorageError and
leave the discrepancy unchanged.

Only apply_selected and add_as_new touch the store.
"""

from typing import Iterable, Optional, Union
from uuid import UUID

import structlog

from debt_reconciler.audit import AuditLogger
from debt_reconciler.models.debt import (
    ActionResult,
    DifferenceField,
    Discrepancy,
    DiscrepancyStatus,
    NewDebt,
    ReportEntry,
    TrackedDebt,
)
from debt_reconciler.reconciliation.differences import diff, updates_from_differences
from debt_reconciler.reconciliation.matcher import MATCH_THRESHOLD, match_all
from debt_reconciler.services.storage import (
    DebtStoreInterface,
    StorageError,
    UploadHistoryInterface,
)

logger = structlog.get_logger(__name__)


class ReconciliationError(Exception):
    """Base exception for reconciliation session errors."""
    pass


class InvalidTransitionError(ReconciliationError):
    """The requested transition is not legal from the discrepancy's state."""
    
    def __init__(self, action: str, discrepancy: Discrepancy, reason: str):
        self.action = action
        self.status = discrepancy.status
        super().__init__(
            f"Cannot {action} '{discrepancy.report_entry.name}' "
            f"({discrepancy.status.value}): {reason}"
        )


class ReconciliationSession:
    """
    Session-local state for reconciling one batch of report entries.
    
    Debts are a snapshot taken when the session starts; the session
    assumes nothing else mutates them while it is open.
    """
    
    def __init__(
        self,
        discrepancies: Iterable[Discrepancy],
        debt_store: Optional[DebtStoreInterface] = None,
        upload_history: Optional[UploadHistoryInterface] = None,
        upload_id: Optional[UUID] = None,
        owner_id: str = "local",
        audit_logger: Optional[AuditLogger] = None,
        correlation_id: Optional[UUID] = None,
    ):
        self._discrepancies = list(discrepancies)
        self._debt_store = debt_store
        self._upload_history = upload_history
        self._owner_id = owner_id
        self._audit_logger = audit_logger
        self.upload_id = upload_id
        self.correlation_id = correlation_id
    
    @classmethod
    def from_report(
        cls,
        entries: list[ReportEntry],
        debts: list[TrackedDebt],
        threshold: int = MATCH_THRESHOLD,
        **kwargs,
    ) -> "ReconciliationSession":
        """Match entries against a debt snapshot and open a session on the result."""
        return cls(match_all(entries, debts, threshold=threshold), **kwargs)
    
    # =========================================================================
    # VIEWS
    # =========================================================================
    
    @property
    def discrepancies(self) -> list[Discrepancy]:
        """All discrepancies, in report entry order."""
        return list(self._discrepancies)
    
    def needs_attention(self) -> list[Discrepancy]:
        """Matched entries that still have differences to resolve."""
        return [
            d for d in self._discrepancies
            if d.is_matched
            and d.differences
            and d.status in (DiscrepancyStatus.PENDING, DiscrepancyStatus.LINKED)
        ]
    
    def unmatched(self) -> list[Discrepancy]:
        """Entries with no tracked debt that are still pending."""
        return [
            d for d in self._discrepancies
            if not d.is_matched and d.status == DiscrepancyStatus.PENDING
        ]
    
    def matched(self) -> list[Discrepancy]:
        """Matched entries with nothing left to change."""
        return [
            d for d in self._discrepancies
            if d.is_matched
            and not d.differences
            and d.status != DiscrepancyStatus.DISMISSED
        ]
    
    # =========================================================================
    # TRANSITIONS
    # =========================================================================
    
    def link_to(self, discrepancy: Discrepancy, debt: TrackedDebt) -> ActionResult:
        """
        Manually match a discrepancy to a debt.
        
        Differences are recomputed against the new debt only and all of
        them are selected.
        """
        self._require_member(discrepancy)
        if discrepancy.is_frozen:
            raise InvalidTransitionError("link", discrepancy, "already resolved")
        
        if debt.id in self._used_debt_ids(exclude=discrepancy):
            logger.info(
                "link_skipped",
                entry=discrepancy.report_entry.name,
                debt_id=str(debt.id),
            )
            return ActionResult(
                success=False,
                message=f"{debt.name} is already matched to another entry",
            )
        
        differences = diff(discrepancy.report_entry, debt)
        discrepancy.matched_debt = debt
        discrepancy.manually_linked_id = debt.id
        discrepancy.differences = differences
        discrepancy.selected_fields = {d.field for d in differences}
        discrepancy.status = DiscrepancyStatus.LINKED
        
        logger.info(
            "discrepancy_linked",
            entry=discrepancy.report_entry.name,
            debt_id=str(debt.id),
            differences=len(differences),
        )
        return ActionResult(
            success=True,
            message=f"Linked to {debt.name}",
        )
    
    def toggle_field(
        self,
        discrepancy: Discrepancy,
        field: Union[DifferenceField, str],
    ) -> ActionResult:
        """Flip whether a differing field will be applied."""
        self._require_member(discrepancy)
        if discrepancy.is_frozen:
            raise InvalidTransitionError("change fields of", discrepancy, "already resolved")
        
        try:
            field = DifferenceField(field)
        except ValueError:
            return ActionResult(success=False, message=f"Unknown field: {field}")
        
        if field not in discrepancy.difference_fields:
            return ActionResult(
                success=False,
                message=f"{field.value} does not differ",
            )
        
        if field in discrepancy.selected_fields:
            discrepancy.selected_fields.discard(field)
            return ActionResult(success=True, message=f"{field.value} will be kept")
        
        discrepancy.selected_fields.add(field)
        return ActionResult(success=True, message=f"{field.value} will be updated")
    
    async def apply_selected(self, discrepancy: Discrepancy) -> ActionResult:
        """
        Write the selected report values to the matched debt in one update.
        
        Raises:
            InvalidTransitionError: Unmatched, dismissed, added or already applied
            StorageError: The store rejected the write (nothing changes here)
        """
        self._require_member(discrepancy)
        if discrepancy.is_frozen:
            raise InvalidTransitionError("apply", discrepancy, "already resolved")
        if discrepancy.matched_debt is None:
            raise InvalidTransitionError("apply", discrepancy, "no matched debt")
        
        entry_name = discrepancy.report_entry.name
        if not discrepancy.differences:
            # Nothing differs: complete without a store write
            discrepancy.selected_fields = set()
            discrepancy.status = DiscrepancyStatus.LINKED
            discrepancy.applied = True
            logger.info("already_up_to_date", entry=entry_name)
            return ActionResult(
                success=True,
                message=f"{discrepancy.matched_debt.name} is already up to date",
            )
    
        updates = updates_from_differences(
            discrepancy.differences,
            discrepancy.selected_fields,
        )
        if not updates:
            logger.info("apply_skipped", entry=entry_name)
            if self._audit_logger:
                await self._audit_logger.log_apply_skipped(
                    entry_name=entry_name,
                    reason="no fields selected",
                    correlation_id=self.correlation_id,
                )
            return ActionResult(success=False, message="No fields selected to update")
        
        debt_id = discrepancy.matched_debt.id
        try:
            updated = await self._store().update_debt(debt_id, updates)
        except StorageError as e:
            await self._store_failed("update_debt", e)
            raise
        
        discrepancy.matched_debt = updated
        discrepancy.differences = []
        discrepancy.selected_fields = set()
        discrepancy.status = DiscrepancyStatus.LINKED
        discrepancy.applied = True
        
        logger.info(
            "updates_applied",
            entry=entry_name,
            debt_id=str(debt_id),
            fields=sorted(updates),
        )
        if self._audit_logger:
            await self._audit_logger.log_updates_applied(
                debt_id=debt_id,
                updates=updates,
                correlation_id=self.correlation_id,
            )
        
        await self._count_update_applied()
        return ActionResult(success=True, message=f"Updated {updated.name}")
    
    async def add_as_new(self, discrepancy: Discrepancy) -> ActionResult:
        """
        Create a tracked debt from an unmatched report entry.
        
        Raises:
            InvalidTransitionError: The entry is matched or already resolved
            StorageError: The store rejected the write (nothing changes here)
        """
        self._require_member(discrepancy)
        if discrepancy.is_frozen:
            raise InvalidTransitionError("add", discrepancy, "already resolved")
        if discrepancy.matched_debt is not None:
            raise InvalidTransitionError("add", discrepancy, "entry is matched to a debt")
        
        entry = discrepancy.report_entry
        try:
            created = await self._store().create_debt(
                self._owner_id,
                NewDebt.from_report_entry(entry),
            )
        except StorageError as e:
            await self._store_failed("create_debt", e)
            raise
        
        discrepancy.status = DiscrepancyStatus.ADDED
        
        logger.info("debt_added", entry=entry.name, debt_id=str(created.id))
        if self._audit_logger:
            await self._audit_logger.log_debt_added(
                debt_id=created.id,
                name=created.name,
                correlation_id=self.correlation_id,
            )
        return ActionResult(success=True, message=f"Added {entry.name} as new debt")
    
    def dismiss(self, discrepancy: Discrepancy) -> ActionResult:
        """Ignore a pending entry for the rest of the session. No undo."""
        self._require_member(discrepancy)
        if discrepancy.status != DiscrepancyStatus.PENDING or discrepancy.applied:
            raise InvalidTransitionError("dismiss", discrepancy, "only pending entries can be dismissed")
        
        discrepancy.differences = []
        discrepancy.selected_fields = set()
        discrepancy.status = DiscrepancyStatus.DISMISSED
        
        logger.info("discrepancy_dismissed", entry=discrepancy.report_entry.name)
        return ActionResult(
            success=True,
            message=f"Dismissed {discrepancy.report_entry.name}",
        )
    
    # =========================================================================
    # HELPERS
    # =========================================================================
    
    def _require_member(self, discrepancy: Discrepancy) -> None:
        if not any(d is discrepancy for d in self._discrepancies):
            raise ReconciliationError("Discrepancy does not belong to this session")
    
    def _used_debt_ids(self, exclude: Discrepancy) -> set[UUID]:
        """Debts held by any other non-dismissed discrepancy."""
        return {
            d.matched_debt.id
            for d in self._discrepancies
            if d is not exclude
            and d.matched_debt is not None
            and d.status != DiscrepancyStatus.DISMISSED
        }
    
    def _store(self) -> DebtStoreInterface:
        if self._debt_store is None:
            raise ReconciliationError("No debt store configured for this session")
        return self._debt_store
    
    async def _store_failed(self, operation: str, error: Exception) -> None:
        logger.error("store_write_failed", operation=operation, error=str(error))
        if self._audit_logger:
            await self._audit_logger.log_store_write_failed(
                operation=operation,
                error_message=str(error),
                correlation_id=self.correlation_id,
            )
    
    async def _count_update_applied(self) -> None:
        """
        Bump the upload's updates-applied counter.
        
        The debt write has already committed, so a failure here is
        recorded but not raised.
        """
        if self._upload_history is None or self.upload_id is None:
            return
        try:
            await self._upload_history.increment_updates_applied(self.upload_id)
        except StorageError as e:
            logger.warning(
                "updates_applied_counter_failed",
                upload_id=str(self.upload_id),
                error=str(e),
            )
            if self._audit_logger:
                await self._audit_logger.log_store_write_failed(
                    operation="increment_updates_applied",
                    error_message=str(e),
                    correlation_id=self.correlation_id,
                )

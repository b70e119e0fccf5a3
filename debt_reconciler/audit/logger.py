"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Complete traceability of changes made to tracked debts
2. Debugging capability for extraction and storage failures
3. A history the user can review

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Any, Optional
from uuid import UUID, uuid4

import structlog

from debt_reconciler.models.audit import AuditEvent, AuditEventBuilder
from debt_reconciler.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.
    
    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """
    
    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.
        
        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("debt_reconciler.audit")
    
    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.
        
        Always logs locally. Persists to storage if available.
        
        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()
        
        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)
        
        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Audit persistence must not break the main flow
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False
        
        return True
    
    async def log_report_uploaded(
        self,
        file_names: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.report_uploaded(
            file_names=file_names,
            correlation_id=correlation_id,
        ))
    
    async def log_upload_validation_failed(
        self,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.upload_validation_failed(
            issues=issues,
            correlation_id=correlation_id,
        ))
    
    async def log_extraction_completed(
        self,
        filename: str,
        entries_found: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.extraction_completed(
            filename=filename,
            entries_found=entries_found,
            correlation_id=correlation_id,
        ))
    
    async def log_extraction_failed(
        self,
        filename: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.extraction_failed(
            filename=filename,
            error_message=error_message,
            correlation_id=correlation_id,
        ))
    
    async def log_entries_matched(
        self,
        entries: int,
        matched: int,
        needs_attention: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.entries_matched(
            entries=entries,
            matched=matched,
            needs_attention=needs_attention,
            correlation_id=correlation_id,
        ))
    
    async def log_upload_history_saved(
        self,
        upload_id: UUID,
        entries_found: int,
        discrepancies_found: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.upload_history_saved(
            upload_id=upload_id,
            entries_found=entries_found,
            discrepancies_found=discrepancies_found,
            correlation_id=correlation_id,
        ))
    
    async def log_updates_applied(
        self,
        debt_id: UUID,
        updates: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.updates_applied(
            debt_id=debt_id,
            updates=updates,
            correlation_id=correlation_id,
        ))
    
    async def log_apply_skipped(
        self,
        entry_name: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.apply_skipped(
            entry_name=entry_name,
            reason=reason,
            correlation_id=correlation_id,
        ))
    
    async def log_debt_added(
        self,
        debt_id: UUID,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.debt_added(
            debt_id=debt_id,
            name=name,
            correlation_id=correlation_id,
        ))
    
    async def log_store_write_failed(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.store_write_failed(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.
    
    Use this at the start of a new user action (e.g., a report upload).
    Pass it through all subsequent operations.
    """
    return uuid4()

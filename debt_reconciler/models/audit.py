"""
Audit Models for Debt Reconciler

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability of every change made to tracked debts
2. Debugging information when extraction or storage fails
3. Ability to reconstruct what a reconciliation session did

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    
    Every step of the upload flow and every session transition has its
    own event type.
    """
    # Upload flow
    REPORT_UPLOADED = "report_uploaded"
    UPLOAD_VALIDATION_FAILED = "upload_validation_failed"
    EXTRACTION_COMPLETED = "extraction_completed"
    EXTRACTION_FAILED = "extraction_failed"
    ENTRIES_MATCHED = "entries_matched"
    UPLOAD_HISTORY_SAVED = "upload_history_saved"
    
    # Reconciliation session
    UPDATES_APPLIED = "updates_applied"
    APPLY_SKIPPED = "apply_skipped"
    DEBT_ADDED = "debt_added"
    
    # Persistence
    STORE_WRITE_FAILED = "store_write_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.
    
    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """
    
    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )
    
    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )
    
    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'debt', 'upload')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    
    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one upload)"
    )
    
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )
    
    error_message: Optional[str] = None
    
    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )
    
    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }
    
    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.
        
        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.
    
    Usage:
        event = AuditEventBuilder.report_uploaded(file_names, correlation_id)
        event = AuditEventBuilder.updates_applied(debt_id, updates, correlation_id)
    """
    
    @staticmethod
    def report_uploaded(
        file_names: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPORT_UPLOADED,
            entity_type="upload",
            correlation_id=correlation_id,
            description=f"Credit report uploaded: {len(file_names)} file(s)",
            details={"file_names": file_names},
            is_user_action=True,
        )
    
    @staticmethod
    def upload_validation_failed(
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UPLOAD_VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="upload",
            correlation_id=correlation_id,
            description=f"Upload rejected with {len(issues)} issue(s)",
            details={"issues": issues},
        )
    
    @staticmethod
    def extraction_completed(
        filename: str,
        entries_found: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_COMPLETED,
            entity_type="extraction",
            correlation_id=correlation_id,
            description=f"Extracted {entries_found} account(s) from {filename}",
            details={
                "filename": filename,
                "entries_found": entries_found,
            },
        )
    
    @staticmethod
    def extraction_failed(
        filename: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="extraction",
            correlation_id=correlation_id,
            description=f"Extraction failed for {filename}",
            details={"filename": filename},
            error_message=error_message,
        )
    
    @staticmethod
    def entries_matched(
        entries: int,
        matched: int,
        needs_attention: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRIES_MATCHED,
            entity_type="upload",
            correlation_id=correlation_id,
            description=f"Matched {matched} of {entries} report entries",
            details={
                "entries": entries,
                "matched": matched,
                "needs_attention": needs_attention,
            },
        )
    
    @staticmethod
    def upload_history_saved(
        upload_id: UUID,
        entries_found: int,
        discrepancies_found: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UPLOAD_HISTORY_SAVED,
            entity_type="upload",
            entity_id=upload_id,
            correlation_id=correlation_id,
            description="Upload history saved",
            details={
                "entries_found": entries_found,
                "discrepancies_found": discrepancies_found,
            },
        )
    
    @staticmethod
    def updates_applied(
        debt_id: UUID,
        updates: dict[str, Any],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UPDATES_APPLIED,
            entity_type="debt",
            entity_id=debt_id,
            correlation_id=correlation_id,
            description=f"Applied {len(updates)} field update(s) from credit report",
            details={"updates": {k: str(v) for k, v in updates.items()}},
            is_user_action=True,
        )
    
    @staticmethod
    def apply_skipped(
        entry_name: str,
        reason: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.APPLY_SKIPPED,
            entity_type="discrepancy",
            correlation_id=correlation_id,
            description=f"Nothing applied for '{entry_name}'",
            details={"reason": reason},
            is_user_action=True,
        )
    
    @staticmethod
    def debt_added(
        debt_id: UUID,
        name: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_ADDED,
            entity_type="debt",
            entity_id=debt_id,
            correlation_id=correlation_id,
            description=f"Added '{name}' as a new debt",
            details={"name": name},
            is_user_action=True,
        )
    
    @staticmethod
    def store_write_failed(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_WRITE_FAILED,
            severity=AuditSeverity.ERROR,
            description=f"Store write failed: {operation}",
            details={"operation": operation},
            error_message=error_message,
            correlation_id=correlation_id,
        )


"""
Data Models Package

This package contains all Pydantic models used in the Debt Reconciler.
All data flowing through the system must conform to these schemas.
"""

from debt_reconciler.models.debt import (
    AccountType,
    ActionResult,
    AnalysisResult,
    AnalysisSummary,
    CreditReportUpload,
    DifferenceField,
    Discrepancy,
    DiscrepancyStatus,
    FieldDifference,
    NewDebt,
    ReportEntry,
    TrackedDebt,
    UploadFile,
    ValidationIssue,
    ValidationResult,
)
from debt_reconciler.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Debt and reconciliation models
    "AccountType",
    "ActionResult",
    "AnalysisResult",
    "AnalysisSummary",
    "CreditReportUpload",
    "DifferenceField",
    "Discrepancy",
    "DiscrepancyStatus",
    "FieldDifference",
    "NewDebt",
    "ReportEntry",
    "TrackedDebt",
    "UploadFile",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]

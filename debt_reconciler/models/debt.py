"""
Core Data Models for Debt Reconciler

These models define the schemas for everything the reconciliation engine
touches:
1. Entries extracted from an uploaded credit report
2. Debts the user already tracks (read-only to the engine)
3. Discrepancies: the unit of reconciliation work
4. Upload history and upload validation

DESIGN DECISION: Report entries keep the camelCase keys the extraction
provider returns (via aliases) so raw results can be stored verbatim,
while Python code uses snake_case attribute names.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AccountType(str, Enum):
    """Account types a credit report entry can have."""
    CREDIT_CARD = "credit_card"
    LOAN = "loan"
    MORTGAGE = "mortgage"


class DiscrepancyStatus(str, Enum):
    """
    Reconciliation status of a single discrepancy.
    
    PENDING is the only starting state. DISMISSED and ADDED are terminal.
    LINKED stays editable until its selected fields are applied.
    """
    PENDING = "pending"
    LINKED = "linked"
    DISMISSED = "dismissed"
    ADDED = "added"


class DifferenceField(str, Enum):
    """Fields that can differ between a report entry and a tracked debt."""
    BALANCE = "Balance"
    LENDER = "Lender"
    ORIGINAL_AMOUNT = "Original Amount"
    MONTHLY_PAYMENT = "Monthly Payment"


# Debt type a new tracked debt gets when created from a report entry
NEW_DEBT_TYPES = {
    AccountType.CREDIT_CARD: "credit_card",
    AccountType.LOAN: "personal_loan",
    AccountType.MORTGAGE: "mortgage",
}


# =============================================================================
# CREDIT REPORT MODELS
# =============================================================================

class ReportEntry(BaseModel):
    """
    A single account extracted from an uploaded credit report.
    
    Ephemeral: produced once per upload by the extraction provider.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )
    
    name: str = Field(
        ...,
        description="Account name as shown on the report"
    )
    account_type: AccountType = Field(
        ...,
        alias="type",
        description="credit_card, loan or mortgage"
    )
    lender: str = Field(
        default="",
        description="Lender / provider name"
    )
    balance: Decimal = Field(
        ...,
        description="Current balance"
    )
    credit_limit: Optional[Decimal] = None
    monthly_payment: Optional[Decimal] = None
    original_borrowed: Optional[Decimal] = None
    last_updated: Optional[str] = None
    available: Optional[Decimal] = None
    
    @field_validator('lender', mode='before')
    @classmethod
    def lender_none_to_empty(cls, v: Any) -> Any:
        """Providers return null for unknown lenders."""
        return "" if v is None else v


class AnalysisSummary(BaseModel):
    """Totals over a batch of report entries."""
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)
    
    total_credit_cards: int = 0
    total_loans: int = 0
    total_mortgages: int = 0
    total_debt: Decimal = Decimal("0")
    total_credit_limit: Decimal = Decimal("0")
    
    @classmethod
    def from_entries(cls, entries: list["ReportEntry"]) -> "AnalysisSummary":
        """Totals recomputed from the entries themselves."""
        return cls(
            total_credit_cards=sum(1 for e in entries if e.account_type == AccountType.CREDIT_CARD),
            total_loans=sum(1 for e in entries if e.account_type == AccountType.LOAN),
            total_mortgages=sum(1 for e in entries if e.account_type == AccountType.MORTGAGE),
            total_debt=sum((e.balance for e in entries), Decimal("0")),
            total_credit_limit=sum((e.credit_limit or Decimal("0") for e in entries), Decimal("0")),
        )


class AnalysisResult(BaseModel):
    """Entries extracted from one or more credit report files."""
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)
    
    entries: list[ReportEntry] = Field(default_factory=list)
    summary: AnalysisSummary = Field(default_factory=AnalysisSummary)


# =============================================================================
# TRACKED DEBT MODELS
# =============================================================================

class TrackedDebt(BaseModel):
    """
    A debt the user already records in the store.
    
    Read-only to the reconciliation engine; changes go through the
    store's update_debt.
    """
    model_config = ConfigDict(populate_by_name=True)
    
    id: UUID = Field(default_factory=uuid4)
    owner_id: Optional[str] = None
    name: str
    debt_type: str = Field(
        default="other",
        alias="type",
        description="credit_card, loan, personal_loan, mortgage, ..."
    )
    lender: Optional[str] = None
    balance: Decimal = Decimal("0")
    starting_balance: Decimal = Decimal("0")
    minimum_payment: Decimal = Decimal("0")
    planned_payment: Optional[Decimal] = None
    
    @property
    def effective_payment(self) -> Decimal:
        """Planned payment when set and non-zero, else the minimum payment."""
        return self.planned_payment if self.planned_payment else self.minimum_payment


class NewDebt(BaseModel):
    """Fields for a tracked debt created from a report entry."""
    model_config = ConfigDict(populate_by_name=True)
    
    name: str
    debt_type: str = Field(alias="type")
    lender: Optional[str] = None
    balance: Decimal
    starting_balance: Decimal
    minimum_payment: Decimal = Decimal("0")
    planned_payment: Optional[Decimal] = None
    
    @classmethod
    def from_report_entry(cls, entry: ReportEntry) -> "NewDebt":
        return cls(
            name=entry.name,
            debt_type=NEW_DEBT_TYPES[entry.account_type],
            lender=entry.lender or None,
            balance=entry.balance,
            starting_balance=entry.original_borrowed or entry.balance,
            minimum_payment=entry.monthly_payment or Decimal("0"),
            planned_payment=entry.monthly_payment,
        )


# =============================================================================
# RECONCILIATION MODELS
# =============================================================================

class FieldDifference(BaseModel):
    """One field whose report value disagrees with the tracked value."""
    
    field: DifferenceField
    report_value: Union[Decimal, str]
    tracked_value: Optional[Union[Decimal, str]] = None


class Discrepancy(BaseModel):
    """
    One report entry, its matched tracked debt (if any) and the
    field-level differences between them.
    
    `differences` is always computed against the current `matched_debt`.
    """
    
    report_entry: ReportEntry
    matched_debt: Optional[TrackedDebt] = None
    differences: list[FieldDifference] = Field(default_factory=list)
    match_score: int = Field(default=0, ge=0, le=100)
    status: DiscrepancyStatus = DiscrepancyStatus.PENDING
    manually_linked_id: Optional[UUID] = None
    selected_fields: set[DifferenceField] = Field(default_factory=set)
    
    # Set once selected fields have been written to the store
    applied: bool = False
    
    @property
    def is_matched(self) -> bool:
        return self.matched_debt is not None
    
    @property
    def difference_fields(self) -> list[DifferenceField]:
        return [d.field for d in self.differences]
    
    @property
    def is_frozen(self) -> bool:
        """No further transitions are allowed."""
        return self.applied or self.status in (
            DiscrepancyStatus.DISMISSED,
            DiscrepancyStatus.ADDED,
        )
    
    @property
    def needs_attention(self) -> bool:
        """Unmatched, or matched with at least one difference."""
        return not self.is_matched or bool(self.differences)


class ActionResult(BaseModel):
    """
    Outcome of a user action that may be a no-op.
    
    Logic no-ops (nothing selected, record already used) are reported
    here rather than raised.
    """
    
    success: bool
    message: str


# =============================================================================
# UPLOAD MODELS
# =============================================================================

class UploadFile(BaseModel):
    """A credit report file selected for upload."""
    
    filename: str
    mime_type: str
    size_bytes: int = Field(ge=0)
    content: bytes = Field(default=b"", repr=False)
    
    @classmethod
    def from_bytes(cls, filename: str, mime_type: str, content: bytes) -> "UploadFile":
        return cls(
            filename=filename,
            mime_type=mime_type,
            size_bytes=len(content),
            content=content,
        )


class CreditReportUpload(BaseModel):
    """One credit report upload in the user's history."""
    
    id: UUID = Field(default_factory=uuid4)
    owner_id: str
    file_names: list[str]
    entries_found: int = Field(default=0, ge=0)
    discrepancies_found: int = Field(default=0, ge=0)
    updates_applied: int = Field(default=0, ge=0)
    raw_results: dict[str, Any] = Field(default_factory=dict)
    uploaded_at: datetime = Field(default_factory=datetime.utcnow)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""
    
    field: str = Field(
        ...,
        description="What the issue is about (e.g., 'files', a file name)"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'too_many_files', 'unsupported_type')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Result of validating a batch of upload files."""
    
    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    
    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)
    
    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
    
    @property
    def message(self) -> str:
        """First error message, for display."""
        for issue in self.issues:
            if issue.severity == "error":
                return issue.message
        return ""

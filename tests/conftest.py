"""
Shared fixtures.

No real API calls in tests: stores are in-memory and the extraction
provider is replaced by FakeExtractor.
"""

from decimal import Decimal

import pytest

from debt_reconciler.config import AppSettings
from debt_reconciler.models.debt import (
    AccountType,
    AnalysisResult,
    AnalysisSummary,
    ReportEntry,
    TrackedDebt,
    UploadFile,
)
from debt_reconciler.services.extraction import ExtractionError


def make_entry(
    name="Chase credit card",
    account_type=AccountType.CREDIT_CARD,
    lender="Chase",
    balance=500,
    **kwargs,
) -> ReportEntry:
    return ReportEntry(
        name=name,
        account_type=account_type,
        lender=lender,
        balance=Decimal(str(balance)),
        **kwargs,
    )


def make_debt(
    name="Chase CC",
    debt_type="credit_card",
    lender="Chase Bank",
    balance=505,
    **kwargs,
) -> TrackedDebt:
    kwargs.setdefault("starting_balance", Decimal(str(balance)))
    return TrackedDebt(
        name=name,
        debt_type=debt_type,
        lender=lender,
        balance=Decimal(str(balance)),
        **kwargs,
    )


def make_file(name="report.png", mime_type="image/png", content=b"fake-image") -> UploadFile:
    return UploadFile.from_bytes(name, mime_type, content)


class FakeExtractor:
    """Returns canned entries per file name; raises for names in `fail_on`."""
    
    def __init__(self, entries_by_file=None, fail_on=()):
        self.entries_by_file = entries_by_file or {}
        self.fail_on = set(fail_on)
        self.calls: list[str] = []
    
    async def analyze(self, file: UploadFile) -> AnalysisResult:
        self.calls.append(file.filename)
        if file.filename in self.fail_on:
            raise ExtractionError(f"Failed to analyze {file.filename}")
        entries = self.entries_by_file.get(file.filename, [])
        return AnalysisResult(
            entries=entries,
            summary=AnalysisSummary.from_entries(entries),
        )


@pytest.fixture
def app_settings() -> AppSettings:
    return AppSettings(owner_id="owner-1")

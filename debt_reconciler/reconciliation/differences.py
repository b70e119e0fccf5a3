"""
Field-level differences between a report entry and its matched debt.

Every rule is independent; any number of differences can coexist.
Amounts are compared with a tolerance of one currency unit.
"""

from decimal import Decimal
from typing import Any, Iterable

from debt_reconciler.models.debt import (
    DifferenceField,
    FieldDifference,
    ReportEntry,
    TrackedDebt,
)
from debt_reconciler.reconciliation.normalizer import normalize

AMOUNT_TOLERANCE = Decimal(1)

# Debt fields written when a difference is applied
FIELD_TARGETS = {
    DifferenceField.BALANCE: ("balance",),
    DifferenceField.LENDER: ("lender",),
    DifferenceField.ORIGINAL_AMOUNT: ("starting_balance",),
    DifferenceField.MONTHLY_PAYMENT: ("minimum_payment", "planned_payment"),
}


def _amounts_differ(a: Decimal, b: Decimal) -> bool:
    return abs(a - b) > AMOUNT_TOLERANCE


def diff(entry: ReportEntry, debt: TrackedDebt) -> list[FieldDifference]:
    """
    Compute differences in a fixed order:
    Balance, Lender, Original Amount, Monthly Payment.
    
    Optional report amounts that are missing or zero are not compared.
    """
    differences = []
    
    if _amounts_differ(entry.balance, debt.balance):
        differences.append(FieldDifference(
            field=DifferenceField.BALANCE,
            report_value=entry.balance,
            tracked_value=debt.balance,
        ))
    
    if entry.lender and (
        not debt.lender or normalize(entry.lender) != normalize(debt.lender)
    ):
        differences.append(FieldDifference(
            field=DifferenceField.LENDER,
            report_value=entry.lender,
            tracked_value=debt.lender,
        ))
    
    if entry.original_borrowed and _amounts_differ(
        entry.original_borrowed, debt.starting_balance
    ):
        differences.append(FieldDifference(
            field=DifferenceField.ORIGINAL_AMOUNT,
            report_value=entry.original_borrowed,
            tracked_value=debt.starting_balance,
        ))
    
    tracked_payment = debt.effective_payment
    if entry.monthly_payment and _amounts_differ(entry.monthly_payment, tracked_payment):
        differences.append(FieldDifference(
            field=DifferenceField.MONTHLY_PAYMENT,
            report_value=entry.monthly_payment,
            tracked_value=tracked_payment,
        ))
    
    return differences


def updates_from_differences(
    differences: Iterable[FieldDifference],
    selected: Iterable[DifferenceField],
) -> dict[str, Any]:
    """Merge the selected differences into one partial debt update."""
    selected = set(selected)
    updates: dict[str, Any] = {}
    for difference in differences:
        if difference.field not in selected:
            continue
        for target in FIELD_TARGETS[difference.field]:
            updates[target] = difference.report_value
    return updates

"""
Match scoring between a credit report entry and a tracked debt.

Additive points, clamped to 100:

    name contains / contained in name          +40
    lender contains / contained in lender      +30
    entry name vs debt lender (either way)     +20
    entry lender vs debt name (either way)     +20
    compatible account type                    +20
    balances within 20% of the larger one      +10
"""

from decimal import Decimal

from debt_reconciler.models.debt import AccountType, ReportEntry, TrackedDebt
from debt_reconciler.reconciliation.normalizer import normalize

NAME_POINTS = 40
LENDER_POINTS = 30
CROSS_POINTS = 20
TYPE_POINTS = 20
BALANCE_POINTS = 10
MAX_SCORE = 100

BALANCE_PROXIMITY = Decimal("0.2")

COMPATIBLE_DEBT_TYPES = {
    AccountType.CREDIT_CARD: {"credit_card"},
    AccountType.LOAN: {"loan", "personal_loan"},
    AccountType.MORTGAGE: {"mortgage"},
}


def contains_either(a: str, b: str) -> bool:
    """Substring containment in either direction. "" is contained in anything."""
    return a in b or b in a


def lenders_match(a: str, b: str) -> bool:
    """
    Lender containment where a missing lender only matches another
    missing lender.
    """
    if not a or not b:
        return a == b
    return contains_either(a, b)


def cross_match(a: str, b: str) -> bool:
    """Name against lender; an empty side never matches."""
    return bool(a and b) and contains_either(a, b)


def types_compatible(account_type: AccountType, debt_type: str) -> bool:
    return debt_type in COMPATIBLE_DEBT_TYPES.get(account_type, set())


def balances_close(a: Decimal, b: Decimal) -> bool:
    """Relative difference against the larger balance (at least 1) is under 20%."""
    return abs(a - b) / max(a, b, Decimal(1)) < BALANCE_PROXIMITY


def score(entry: ReportEntry, debt: TrackedDebt) -> int:
    """Score how likely `debt` is the tracked version of `entry`, 0-100."""
    entry_name = normalize(entry.name)
    entry_lender = normalize(entry.lender)
    debt_name = normalize(debt.name)
    debt_lender = normalize(debt.lender or "")
    
    total = 0
    if contains_either(entry_name, debt_name):
        total += NAME_POINTS
    if lenders_match(entry_lender, debt_lender):
        total += LENDER_POINTS
    if cross_match(entry_name, debt_lender):
        total += CROSS_POINTS
    if cross_match(entry_lender, debt_name):
        total += CROSS_POINTS
    if types_compatible(entry.account_type, debt.debt_type):
        total += TYPE_POINTS
    if balances_close(entry.balance, debt.balance):
        total += BALANCE_POINTS
    
    return min(total, MAX_SCORE)

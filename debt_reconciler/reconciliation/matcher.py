"""
Greedy assignment of report entries to tracked debts.

Entries are processed in input order. Each takes the highest-scoring debt
not already taken by an earlier entry; ties go to the debt seen first.
A best score below the threshold leaves the entry unmatched.

This is order-dependent and not a maximum-weight bipartite matching:
an early entry can take a debt a later entry would have scored higher on.
"""

from typing import Optional
from uuid import UUID

import structlog

from debt_reconciler.models.debt import (
    Discrepancy,
    ReportEntry,
    TrackedDebt,
)
from debt_reconciler.reconciliation.differences import diff
from debt_reconciler.reconciliation.normalizer import normalize
from debt_reconciler.reconciliation.scorer import score

logger = structlog.get_logger(__name__)

MATCH_THRESHOLD = 40


def build_discrepancy(
    entry: ReportEntry,
    debt: Optional[TrackedDebt],
    match_score: int = 0,
) -> Discrepancy:
    """A pending discrepancy with every difference selected."""
    differences = diff(entry, debt) if debt is not None else []
    return Discrepancy(
        report_entry=entry,
        matched_debt=debt,
        differences=differences,
        match_score=match_score,
        selected_fields={d.field for d in differences},
    )


def best_candidate(
    entry: ReportEntry,
    debts: list[TrackedDebt],
    used_ids: set[UUID],
) -> tuple[Optional[TrackedDebt], int]:
    """Highest-scoring unused debt for an entry (first one wins ties)."""
    best_debt = None
    best_score = -1
    for debt in debts:
        if debt.id in used_ids:
            continue
        candidate_score = score(entry, debt)
        if candidate_score > best_score:
            best_debt, best_score = debt, candidate_score
    return best_debt, max(best_score, 0)


def match_all(
    entries: list[ReportEntry],
    debts: list[TrackedDebt],
    threshold: int = MATCH_THRESHOLD,
    used_ids: Optional[set[UUID]] = None,
) -> list[Discrepancy]:
    """
    One discrepancy per entry, in entry order.
    
    Args:
        entries: Report entries to reconcile
        debts: Snapshot of tracked debts; iteration order breaks ties
        threshold: Minimum score for a match
        used_ids: Debt ids already taken; updated in place as debts are assigned
    """
    used_ids = set() if used_ids is None else used_ids
    discrepancies = []
    
    for entry in entries:
        debt, best_score = best_candidate(entry, debts, used_ids)
        if debt is not None and best_score >= threshold:
            used_ids.add(debt.id)
            discrepancies.append(build_discrepancy(entry, debt, best_score))
        else:
            discrepancies.append(build_discrepancy(entry, None))
    
    logger.info(
        "entries_matched",
        entries=len(entries),
        debts=len(debts),
        matched=sum(1 for d in discrepancies if d.is_matched),
    )
    return discrepancies


def dedupe_entries(entries: list[ReportEntry]) -> list[ReportEntry]:
    """Drop entries whose normalized name and lender equal an earlier entry's."""
    seen: set[tuple[str, str]] = set()
    unique = []
    for entry in entries:
        key = (normalize(entry.name), normalize(entry.lender))
        if key in seen:
            continue
        seen.add(key)
        unique.append(entry)
    return unique

"""Credit report to tracked debt reconciliation."""

from debt_reconciler.reconciliation.differences import diff, updates_from_differences
from debt_reconciler.reconciliation.matcher import (
    MATCH_THRESHOLD,
    build_discrepancy,
    dedupe_entries,
    match_all,
)
from debt_reconciler.reconciliation.normalizer import normalize
from debt_reconciler.reconciliation.scorer import score, types_compatible
from debt_reconciler.reconciliation.session import (
    InvalidTransitionError,
    ReconciliationError,
    ReconciliationSession,
)

__all__ = [
    "InvalidTransitionError",
    "MATCH_THRESHOLD",
    "ReconciliationError",
    "ReconciliationSession",
    "build_discrepancy",
    "dedupe_entries",
    "diff",
    "match_all",
    "normalize",
    "score",
    "types_compatible",
    "updates_from_differences",
]

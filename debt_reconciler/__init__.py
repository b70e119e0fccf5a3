"""
Debt Reconciler - Source Package

Reconciles the accounts found on an uploaded credit report against the
debts a user already tracks.

DESIGN PRINCIPLES:
1. The report suggests -> the user decides -> the store is updated
2. Matching is a heuristic, never a silent overwrite
3. Nothing is written without an explicit apply / add
4. Every step must be auditable
5. Storage and extraction providers are swappable
"""

__version__ = "1.0.0"
__author__ = "Debt Reconciler Team"

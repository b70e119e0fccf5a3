"""
Name normalization for fuzzy matching.

Deliberately crude: lowercase, keep [a-z0-9], then strip account-type and
company-suffix words in a fixed order. Used only to compare names, never
for display or storage.
"""

import re

_NON_ALNUM = re.compile(r"[^a-z0-9]")

# Applied in this order, each globally, to the already-stripped text
STRIP_TERMS = (
    "creditcard",
    "unsecuredloan",
    "securedloan",
    "loan",
    "mortgage",
    "plc",
    "ltd",
    "limited",
)


def _strip_terms(text: str) -> str:
    for term in STRIP_TERMS:
        text = text.replace(term, "")
    return text


def normalize(text) -> str:
    """Canonical form of a lender or account name."""
    if not text:
        return ""
    normalized = _NON_ALNUM.sub("", str(text).lower())
    
    # A removal can splice a new term together ("lloanoan" -> "loan"),
    # so repeat until nothing changes. Keeps normalize idempotent.
    while True:
        stripped = _strip_terms(normalized)
        if stripped == normalized:
            return stripped
        normalized = stripped

"""Credit report extraction package."""

from debt_reconciler.services.extraction.gemini_service import (
    CreditReportExtractor,
    ExtractionError,
    ExtractionFailedError,
    ProviderRateLimitedError,
    parse_analysis,
)

__all__ = [
    "CreditReportExtractor",
    "ExtractionError",
    "ExtractionFailedError",
    "ProviderRateLimitedError",
    "parse_analysis",
]

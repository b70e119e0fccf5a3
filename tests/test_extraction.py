"""
Tests for credit report extraction.

The Gemini model is replaced with a stub; no network calls are made.
"""

import asyncio
import json
from decimal import Decimal

import pytest
from google.api_core import exceptions as google_exceptions

from debt_reconciler.models.debt import AccountType
from debt_reconciler.services.extraction import (
    CreditReportExtractor,
    ExtractionError,
    ExtractionFailedError,
    ProviderRateLimitedError,
    parse_analysis,
)

from conftest import make_file


PAYLOAD = {
    "entries": [
        {
            "name": "Barclaycard Platinum",
            "type": "credit_card",
            "lender": "Barclays",
            "balance": 1200.50,
            "creditLimit": 4000,
            "monthlyPayment": 35,
            "originalBorrowed": None,
            "lastUpdated": "01 Mar 2024",
            "available": 2799.50,
        },
        {
            "name": "Zopa unsecured loan",
            "type": "loan",
            "lender": None,
            "balance": 3000,
            "creditLimit": None,
            "monthlyPayment": 150,
            "originalBorrowed": 5000,
            "lastUpdated": None,
            "available": None,
        },
    ],
    # Deliberately wrong; totals are recomputed
    "summary": {
        "totalCreditCards": 9,
        "totalLoans": 9,
        "totalMortgages": 9,
        "totalDebt": 1,
        "totalCreditLimit": 1,
    },
}


class TestParseAnalysis:
    
    def test_plain_json(self):
        result = parse_analysis(json.dumps(PAYLOAD))
        card, loan = result.entries
        assert card.account_type == AccountType.CREDIT_CARD
        assert card.credit_limit == Decimal("4000")
        assert loan.lender == ""
        assert loan.original_borrowed == Decimal("5000")
    
    def test_fenced_json(self):
        text = "Here you go:\n```json\n" + json.dumps(PAYLOAD) + "\n```\n"
        assert len(parse_analysis(text).entries) == 2
    
    def test_summary_is_recomputed(self):
        summary = parse_analysis(json.dumps(PAYLOAD)).summary
        assert summary.total_credit_cards == 1
        assert summary.total_loans == 1
        assert summary.total_mortgages == 0
        assert summary.total_debt == Decimal("4200.5")
        assert summary.total_credit_limit == Decimal("4000")
    
    def test_missing_summary(self):
        result = parse_analysis(json.dumps({"entries": PAYLOAD["entries"]}))
        assert result.summary.total_credit_cards == 1
    
    @pytest.mark.parametrize("text", [None, "", "   "])
    def test_empty_answer(self, text):
        with pytest.raises(ExtractionFailedError, match="No response from AI"):
            parse_analysis(text)
    
    @pytest.mark.parametrize("text", [
        "I could not read this document.",
        '{"entries": [{"name": "X", "type": "boat", "balance": 1}]}',
        '{"entries": [{"name": "X", "type": "loan"}]}',
    ])
    def test_unusable_answer(self, text):
        with pytest.raises(ExtractionFailedError, match="Failed to parse credit report data"):
            parse_analysis(text)


class _StubResponse:
    def __init__(self, text):
        self.text = text


class _StubModel:
    """Stands in for genai.GenerativeModel."""
    
    def __init__(self, text="", error=None):
        self._text = text
        self._error = error
        self.requests = []
    
    async def generate_content_async(self, contents):
        self.requests.append(contents)
        if self._error:
            raise self._error
        return _StubResponse(self._text)


@pytest.fixture
def extractor(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    return CreditReportExtractor()


class TestCreditReportExtractor:
    
    def test_analyze(self, extractor):
        model = _StubModel(text=json.dumps(PAYLOAD))
        extractor._model = model
        
        result = asyncio.run(extractor.analyze(make_file()))
        
        assert len(result.entries) == 2
        [(blob, prompt)] = model.requests
        assert blob == {"mime_type": "image/png", "data": b"fake-image"}
        assert "credit report" in prompt
    
    def test_rate_limited(self, extractor):
        extractor._model = _StubModel(error=google_exceptions.ResourceExhausted("quota"))
        with pytest.raises(ProviderRateLimitedError):
            asyncio.run(extractor.analyze(make_file()))
    
    def test_provider_error(self, extractor):
        extractor._model = _StubModel(error=google_exceptions.PermissionDenied("bad key"))
        with pytest.raises(ExtractionError, match="report.png"):
            asyncio.run(extractor.analyze(make_file()))
    
    def test_empty_answer(self, extractor):
        extractor._model = _StubModel(text="")
        with pytest.raises(ExtractionFailedError):
            asyncio.run(extractor.analyze(make_file()))

"""
Credit Report Extraction using Gemini

DESIGN DECISION: A multimodal model reads the report directly from the
uploaded image or PDF and returns structured JSON. We:
1. Send the file bytes with a fixed extraction prompt
2. Parse the JSON (tolerating a fenced ```json block)
3. Validate it into our ReportEntry models
4. Recompute the summary locally - totals from the model are not trusted

This service ONLY extracts. It never matches, never writes to storage.
"""

import json
import re
from typing import Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from debt_reconciler.config import get_settings
from debt_reconciler.models.debt import AnalysisResult, AnalysisSummary, UploadFile


class ExtractionError(Exception):
    """Base exception for extraction provider errors."""
    pass


class ExtractionFailedError(ExtractionError):
    """The provider answered but no usable data could be read from it."""
    pass


class ProviderRateLimitedError(ExtractionError):
    """The provider refused the request because of rate or quota limits."""
    pass


SYSTEM_PROMPT = """You are a credit report analyzer. Extract all credit accounts from the provided credit report image/document.

For each account, extract:
- name: The account name (e.g., "Chase credit card", "Barclaycard credit card", "Rate Setter unsecured loan")
- type: One of "credit_card", "loan", or "mortgage"
- lender: The lender/provider name (e.g., "Chase", "Barclays", "Rate Setter")
- balance: Current balance in GBP (number only, no currency symbol)
- creditLimit: For credit cards, the credit limit (number only)
- monthlyPayment: Monthly repayment amount if shown (number only)
- originalBorrowed: For loans, the original borrowed amount (number only)
- lastUpdated: Date last updated if shown (format: "DD MMM YYYY")
- available: Available credit if shown (number only)

Return ONLY valid JSON in this exact format:
{
  "entries": [
    {
      "name": "string",
      "type": "credit_card" | "loan" | "mortgage",
      "lender": "string",
      "balance": number,
      "creditLimit": number or null,
      "monthlyPayment": number or null,
      "originalBorrowed": number or null,
      "lastUpdated": "string" or null,
      "available": number or null
    }
  ],
  "summary": {
    "totalCreditCards": number,
    "totalLoans": number,
    "totalMortgages": number,
    "totalDebt": number,
    "totalCreditLimit": number
  }
}

Be thorough - extract ALL accounts shown in the image. Credit cards have credit limits, loans have borrowed amounts, mortgages are for property."""

USER_PROMPT = "Analyze this credit report and extract all credit accounts. Return the structured JSON data."

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)```")

# Transient provider failures worth another attempt
_TRANSIENT_ERRORS = (
    google_exceptions.ServiceUnavailable,
    google_exceptions.DeadlineExceeded,
    google_exceptions.InternalServerError,
)


def parse_analysis(text: Optional[str]) -> AnalysisResult:
    """
    Parse the model's answer into an AnalysisResult.
    
    Raises:
        ExtractionFailedError: Empty, non-JSON or schema-invalid answer
    """
    if not text or not text.strip():
        raise ExtractionFailedError("No response from AI")
    
    match = _FENCED_JSON.search(text)
    json_str = match.group(1).strip() if match else text.strip()
    
    try:
        data = json.loads(json_str)
        result = AnalysisResult.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        raise ExtractionFailedError("Failed to parse credit report data") from e
    
    result.summary = AnalysisSummary.from_entries(result.entries)
    return result


class CreditReportExtractor:
    """
    Extracts credit accounts from one uploaded report file.
    
    IMPORTANT BOUNDARIES:
    1. One provider call per file
    2. Provider errors are raised as ExtractionError subclasses
    3. No partial results - a file either parses fully or fails
    """
    
    def __init__(self):
        self._settings = get_settings().gemini
        self._model: Optional[genai.GenerativeModel] = None
    
    def _get_model(self) -> genai.GenerativeModel:
        """Get or create the Gemini model."""
        if self._model is None:
            genai.configure(api_key=self._settings.api_key)
            self._model = genai.GenerativeModel(
                model_name=self._settings.model_name,
                system_instruction=SYSTEM_PROMPT,
                generation_config={
                    "temperature": self._settings.temperature,
                    "max_output_tokens": self._settings.max_tokens,
                    "response_mime_type": "application/json",
                },
            )
        return self._model
    
    @retry(
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _generate(self, file: UploadFile) -> str:
        response = await self._get_model().generate_content_async([
            {"mime_type": file.mime_type, "data": file.content},
            USER_PROMPT,
        ])
        try:
            return response.text
        except ValueError:
            # Blocked or empty candidates
            return ""
    
    async def analyze(self, file: UploadFile) -> AnalysisResult:
        """
        Extract all credit accounts from a report file.
        
        Raises:
            ProviderRateLimitedError: Rate limit or quota exhausted
            ExtractionFailedError: The answer could not be parsed
            ExtractionError: Any other provider failure
        """
        try:
            text = await self._generate(file)
        except google_exceptions.ResourceExhausted as e:
            raise ProviderRateLimitedError(
                "Rate limit exceeded. Please try again in a moment."
            ) from e
        except google_exceptions.GoogleAPIError as e:
            raise ExtractionError(f"Failed to analyze {file.filename}: {e}") from e
        
        return parse_analysis(text)

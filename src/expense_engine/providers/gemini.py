"""Receipt extraction with Google Gemini."""

from __future__ import annotations

import json
import logging
import os
import re
from typing import Any

import google.generativeai as genai

from expense_engine.exceptions import ExtractionError
from expense_engine.providers.base import SUPPORTED_DOCUMENT_TYPES, ExtractedExpense

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT = """You are an AI assistant that extracts expense data from receipts, invoices, and expense documents.

Analyze this {file_type} and extract ALL expense line items you can find. Each line item should be a separate expense record.

For EACH expense found, extract:
1. Merchant/Vendor Name (restaurant, store, company name)
2. Amount (numerical value only, no currency symbols)
3. Currency (USD, EUR, INR, etc.)
4. Date (in YYYY-MM-DD format)
5. Category (Food, Travel, Accommodation, Transport, Office Supplies, Entertainment, Training, or General)
6. Description (brief description of the item/service)
7. Expense Type (Meal, Flight, Hotel, Taxi, etc.)

Return ONLY a valid JSON array of expense objects with the keys
merchantName, amount, currency, date, category, description, expenseType.
If a field cannot be read, omit it."""

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


def parse_extraction_response(text: str) -> list[dict[str, Any]]:
    """Parse the model's JSON answer, tolerating markdown code fences.

    Raises:
        ExtractionError: if the answer is not a JSON array or object
    """
    cleaned = _FENCE.sub("", text.strip()).strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Extractor returned invalid JSON: {e}") from e

    if isinstance(data, dict):
        data = data.get("expenses", [data])
    if not isinstance(data, list) or not all(isinstance(d, dict) for d in data):
        raise ExtractionError("Extractor did not return a list of expense objects")
    return data


class GeminiDocumentExtractor:
    """Extracts expense lines from images, PDFs and spreadsheets with Gemini."""

    def __init__(self, api_key: str | None = None, model_name: str = "gemini-2.5-flash"):
        api_key = api_key or os.getenv("GOOGLE_API_KEY")
        if not api_key:
            raise ExtractionError("GOOGLE_API_KEY is not configured")
        genai.configure(api_key=api_key)
        self.model_name = model_name
        self.model = genai.GenerativeModel(model_name)

    async def extract(self, content: bytes, filename: str) -> list[ExtractedExpense]:
        """Send the document to Gemini and parse the returned records."""
        ext = os.path.splitext(filename)[1].lower()
        if ext not in SUPPORTED_DOCUMENT_TYPES:
            raise ExtractionError(f"Unsupported document type '{ext}'")
        file_type, mime_type = SUPPORTED_DOCUMENT_TYPES[ext]

        try:
            response = await self.model.generate_content_async(
                [
                    {"mime_type": mime_type, "data": content},
                    EXTRACTION_PROMPT.format(file_type=file_type),
                ]
            )
            text = response.text
        except Exception as e:
            logger.error("Gemini extraction failed for %s: %s", filename, e)
            raise ExtractionError(f"Error processing receipt: {e}") from e

        if not text:
            raise ExtractionError("Extractor returned an empty response")

        records = parse_extraction_response(text)
        logger.info("Extracted %d expense(s) from %s", len(records), filename)
        return [ExtractedExpense.from_dict(record) for record in records]

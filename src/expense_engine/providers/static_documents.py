"""Canned document extractor for local development and testing.

Replace with GeminiDocumentExtractor (or another OCR service) in production.
"""

from __future__ import annotations

from typing import Any

from expense_engine.exceptions import ExtractionError
from expense_engine.providers.base import ExtractedExpense


class StaticDocumentExtractor:
    """Returns the same records for every document.

    Args:
        records: raw extractor dicts (camelCase keys, like a model answer)
        fail_with: if set, every call raises ExtractionError with this message
    """

    def __init__(
        self,
        records: list[dict[str, Any]] | None = None,
        fail_with: str | None = None,
    ):
        self.records = records or []
        self.fail_with = fail_with
        self.calls: list[str] = []

    async def extract(self, content: bytes, filename: str) -> list[ExtractedExpense]:
        """Return the configured records."""
        self.calls.append(filename)
        if self.fail_with is not None:
            raise ExtractionError(self.fail_with)
        return [ExtractedExpense.from_dict(record) for record in self.records]

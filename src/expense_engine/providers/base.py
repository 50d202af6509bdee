"""Base protocols and types for external collaborators.

Currency conversion and document extraction are external services. The
expense service only talks to them through these protocols.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

DEFAULT_MERCHANT = "Unknown Merchant"
DEFAULT_CURRENCY = "USD"
DEFAULT_CATEGORY = "General"
DEFAULT_DESCRIPTION = "AI extracted expense"

# extension -> (file type label, MIME type)
SUPPORTED_DOCUMENT_TYPES: dict[str, tuple[str, str]] = {
    ".jpg": ("image", "image/jpeg"),
    ".jpeg": ("image", "image/jpeg"),
    ".png": ("image", "image/png"),
    ".pdf": ("PDF", "application/pdf"),
    ".xlsx": (
        "Excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ),
    ".xls": ("Excel", "application/vnd.ms-excel"),
}


class CurrencyConverter(Protocol):
    """Protocol for currency conversion services."""

    async def convert(
        self, amount: Decimal, from_currency: str, to_currency: str
    ) -> Decimal:
        """Convert ``amount`` between currencies.

        Raises:
            ConversionError: if no rate is available
        """
        ...


@dataclass(frozen=True)
class ExtractedExpense:
    """One expense record read from an uploaded document."""

    merchant_name: str
    amount: Decimal
    currency: str
    date: datetime.date
    category: str
    description: str
    expense_type: str | None = None

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], today: datetime.date | None = None
    ) -> ExtractedExpense:
        """Build a record from extractor JSON, filling defaults for missing fields.

        Accepts both camelCase (``merchantName``) and snake_case keys.
        """
        today = today or datetime.date.today()

        def pick(*keys: str) -> Any:
            for key in keys:
                value = data.get(key)
                if value not in (None, ""):
                    return value
            return None

        try:
            amount = Decimal(str(pick("amount") or 0))
        except InvalidOperation:
            amount = Decimal("0")

        raw_date = pick("date", "expenseDate", "expense_date")
        try:
            parsed_date = (
                datetime.date.fromisoformat(str(raw_date)[:10]) if raw_date else today
            )
        except ValueError:
            parsed_date = today

        return cls(
            merchant_name=pick("merchantName", "merchant_name") or DEFAULT_MERCHANT,
            amount=amount,
            currency=str(pick("currency") or DEFAULT_CURRENCY).upper(),
            date=parsed_date,
            category=pick("category") or DEFAULT_CATEGORY,
            description=pick("description") or DEFAULT_DESCRIPTION,
            expense_type=pick("expenseType", "expense_type"),
        )


class DocumentExtractor(Protocol):
    """Protocol for receipt / invoice extraction services."""

    async def extract(self, content: bytes, filename: str) -> list[ExtractedExpense]:
        """Extract every expense line from a document.

        Raises:
            ExtractionError: if the document cannot be processed
        """
        ...


class CountryCurrencyLookup(Protocol):
    """Protocol for country to currency lookups used when onboarding a company."""

    async def currency_for(self, country: str) -> str | None:
        """ISO currency code of ``country``, or None if the country is unknown.

        Raises:
            CurrencyLookupError: if the lookup service is unavailable
        """
        ...

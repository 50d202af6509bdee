"""Adapters for external collaborators: currency conversion and lookup, document extraction."""

from expense_engine.providers.base import (
    SUPPORTED_DOCUMENT_TYPES,
    CountryCurrencyLookup,
    CurrencyConverter,
    DocumentExtractor,
    ExtractedExpense,
)
from expense_engine.providers.countries import (
    RestCountriesCurrencyLookup,
    StaticCountryCurrencies,
)
from expense_engine.providers.exchange_rate import ExchangeRateApiConverter
from expense_engine.providers.static_documents import StaticDocumentExtractor
from expense_engine.providers.static_rates import StaticRateConverter

__all__ = [
    "SUPPORTED_DOCUMENT_TYPES",
    "CountryCurrencyLookup",
    "CurrencyConverter",
    "DocumentExtractor",
    "ExtractedExpense",
    "ExchangeRateApiConverter",
    "RestCountriesCurrencyLookup",
    "StaticCountryCurrencies",
    "StaticDocumentExtractor",
    "StaticRateConverter",
]

"""Country currency lookup backed by the restcountries.com API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from expense_engine.exceptions import CurrencyLookupError

logger = logging.getLogger(__name__)


class RestCountriesCurrencyLookup:
    """Looks up a country's currency with ``GET {base_url}/all?fields=name,currencies``.

    A country matches on its common or official name, case-insensitively.
    The first listed currency wins.
    """

    def __init__(
        self,
        base_url: str = "https://restcountries.com/v3.1",
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def currency_for(self, country: str) -> str | None:
        wanted = country.strip().lower()
        for entry in await self._fetch_countries(country):
            names = entry.get("name") or {}
            candidates = {
                str(names.get("common", "")).lower(),
                str(names.get("official", "")).lower(),
            }
            if wanted in candidates:
                currencies = entry.get("currencies") or {}
                return next(iter(currencies), None)
        return None

    async def _fetch_countries(self, country: str) -> list[dict[str, Any]]:
        url = f"{self.base_url}/all"
        params = {"fields": "name,currencies"}
        try:
            if self._client is not None:
                response = await self._client.get(url, params=params, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, params=params)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Country lookup for %s failed: %s", country, e)
            raise CurrencyLookupError(country, str(e)) from e

        if not isinstance(payload, list):
            raise CurrencyLookupError(country, "Unexpected response shape")
        return [entry for entry in payload if isinstance(entry, dict)]


class StaticCountryCurrencies:
    """Fixed ``{country: currency}`` table for local development and testing."""

    def __init__(self, currencies: dict[str, str] | None = None):
        self._currencies = {
            name.lower(): code.upper() for name, code in (currencies or {}).items()
        }
        self.calls: list[str] = []

    async def currency_for(self, country: str) -> str | None:
        self.calls.append(country)
        return self._currencies.get(country.strip().lower())

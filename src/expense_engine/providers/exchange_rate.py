"""Currency conversion backed by the exchangerate-api.com public rates endpoint."""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

import httpx

from expense_engine.exceptions import ConversionError

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class ExchangeRateApiConverter:
    """Converts amounts using ``GET {base_url}/{from_currency}``.

    The endpoint returns ``{"rates": {"EUR": 0.92, ...}}``. Results are
    rounded to cents.
    """

    def __init__(
        self,
        base_url: str = "https://api.exchangerate-api.com/v4/latest",
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def convert(
        self, amount: Decimal, from_currency: str, to_currency: str
    ) -> Decimal:
        """Convert ``amount`` from one currency to another."""
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()
        if from_currency == to_currency:
            return amount

        rate = await self._fetch_rate(from_currency, to_currency)
        return (Decimal(amount) * rate).quantize(CENTS, rounding=ROUND_HALF_UP)

    async def _fetch_rate(self, from_currency: str, to_currency: str) -> Decimal:
        url = f"{self.base_url}/{from_currency}"
        try:
            if self._client is not None:
                response = await self._client.get(url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Rate lookup for %s failed: %s", from_currency, e)
            raise ConversionError(from_currency, to_currency, str(e)) from e

        raw_rate = (payload.get("rates") or {}).get(to_currency)
        if raw_rate is None:
            raise ConversionError(
                from_currency, to_currency, "Currency conversion rate not found"
            )
        try:
            return Decimal(str(raw_rate))
        except InvalidOperation as e:
            raise ConversionError(
                from_currency, to_currency, f"Invalid rate {raw_rate!r}"
            ) from e

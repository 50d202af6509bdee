"""Fixed-table currency converter for local development and testing.

Replace with ExchangeRateApiConverter (or another live source) in production.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from expense_engine.exceptions import ConversionError

CENTS = Decimal("0.01")


class StaticRateConverter:
    """Converts with a fixed ``{(from, to): rate}`` table.

    The inverse of a configured pair is derived automatically.
    """

    def __init__(self, rates: dict[tuple[str, str], Decimal | str] | None = None):
        self._rates: dict[tuple[str, str], Decimal] = {}
        for (from_currency, to_currency), rate in (rates or {}).items():
            self._rates[(from_currency.upper(), to_currency.upper())] = Decimal(str(rate))
        self.calls: list[tuple[Decimal, str, str]] = []

    def rate(self, from_currency: str, to_currency: str) -> Decimal:
        """Look up a rate, raising ConversionError if the pair is unknown."""
        key = (from_currency.upper(), to_currency.upper())
        if key in self._rates:
            return self._rates[key]
        inverse = (key[1], key[0])
        if inverse in self._rates and self._rates[inverse] != 0:
            return Decimal(1) / self._rates[inverse]
        raise ConversionError(key[0], key[1], "Currency conversion rate not found")

    async def convert(
        self, amount: Decimal, from_currency: str, to_currency: str
    ) -> Decimal:
        """Convert ``amount`` using the table."""
        self.calls.append((amount, from_currency, to_currency))
        if from_currency.upper() == to_currency.upper():
            return amount
        rate = self.rate(from_currency, to_currency)
        return (Decimal(amount) * rate).quantize(CENTS, rounding=ROUND_HALF_UP)

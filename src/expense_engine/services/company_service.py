"""Company onboarding: a new company together with its first admin."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from sqlalchemy.ext.asyncio import AsyncSession

from expense_engine.exceptions import CurrencyLookupError, ValidationError
from expense_engine.models import Company, User
from expense_engine.providers.base import DEFAULT_CURRENCY, CountryCurrencyLookup
from expense_engine.services.user_service import UserInput, UserService

logger = logging.getLogger(__name__)


@dataclass
class OnboardingResult:
    """A freshly created company and its admin."""

    company: Company
    admin: User


class CompanyService:
    """Creates companies.

    The company currency comes from the country and is what every expense
    of the company is converted into. Unknown countries and lookup failures
    fall back to USD.
    """

    def __init__(self, session: AsyncSession, currency_lookup: CountryCurrencyLookup):
        self.session = session
        self.currency_lookup = currency_lookup

    async def create_company(
        self, name: str, country: str, admin: UserInput
    ) -> OnboardingResult:
        """Create a company and make ``admin`` its first admin user.

        Raises:
            ValidationError: blank name or country, or the admin email is taken
        """
        name = name.strip()
        country = country.strip()
        if not name:
            raise ValidationError("Company name is required", field="name")
        if not country:
            raise ValidationError("Country is required", field="country")

        currency = await self._currency_for(country)
        company = Company(name=name, country=country, currency=currency)
        self.session.add(company)
        await self.session.flush()

        user = await UserService(self.session).create_user(
            company.company_id, replace(admin, role="admin", manager_id=None)
        )
        logger.info(
            "Onboarded company %s (%s, %s) with admin %s",
            company.company_id,
            country,
            currency,
            user.user_id,
        )
        return OnboardingResult(company=company, admin=user)

    async def _currency_for(self, country: str) -> str:
        try:
            currency = await self.currency_lookup.currency_for(country)
        except CurrencyLookupError as e:
            logger.warning("%s; using %s", e, DEFAULT_CURRENCY)
            return DEFAULT_CURRENCY
        if not currency:
            logger.warning("No currency known for %s; using %s", country, DEFAULT_CURRENCY)
            return DEFAULT_CURRENCY
        return currency.upper()

"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from expense_engine.config import Settings, get_settings
from expense_engine.database import get_session
from expense_engine.models import User
from expense_engine.providers import (
    CountryCurrencyLookup,
    CurrencyConverter,
    DocumentExtractor,
    ExchangeRateApiConverter,
    RestCountriesCurrencyLookup,
)
from expense_engine.providers.gemini import GeminiDocumentExtractor
from expense_engine.services import CompanyService, ExpenseService


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency.

    Rolls back on error so a failed decision leaves no partial writes.
    """
    async with get_session() as session:
        yield session


DbSession = Annotated[AsyncSession, Depends(get_db_session)]
AppSettings = Annotated[Settings, Depends(get_settings)]


async def get_current_user(
    db: DbSession,
    x_user_id: Annotated[str | None, Header()] = None,
) -> User:
    """Resolve the caller from the X-User-ID header."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-ID header is required",
        )
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-User-ID format",
        )

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown or inactive user",
        )
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_roles(*roles: str):
    """Build a dependency that only lets callers with one of ``roles`` through."""

    async def checker(user: CurrentUser) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {' or '.join(roles)}",
            )
        return user

    return checker


AdminUser = Annotated[User, Depends(require_roles("admin"))]
ApproverUser = Annotated[User, Depends(require_roles("manager", "admin"))]


def get_currency_converter(settings: AppSettings) -> CurrencyConverter:
    return ExchangeRateApiConverter(
        base_url=settings.exchange_rate_api_url,
        timeout=settings.exchange_rate_timeout,
    )


def get_currency_lookup(settings: AppSettings) -> CountryCurrencyLookup:
    return RestCountriesCurrencyLookup(
        base_url=settings.countries_api_url,
        timeout=settings.exchange_rate_timeout,
    )


def get_document_extractor(settings: AppSettings) -> DocumentExtractor | None:
    """Gemini extractor, or None when no API key is configured."""
    if not settings.google_api_key:
        return None
    return GeminiDocumentExtractor(
        api_key=settings.google_api_key, model_name=settings.gemini_model
    )


def get_expense_service(
    db: DbSession,
    settings: AppSettings,
    converter: Annotated[CurrencyConverter, Depends(get_currency_converter)],
    extractor: Annotated[DocumentExtractor | None, Depends(get_document_extractor)],
) -> ExpenseService:
    return ExpenseService(
        db,
        converter=converter,
        extractor=extractor,
        unrouted_policy=settings.unrouted_expense_policy,
        max_upload_bytes=settings.max_upload_bytes,
    )


def get_company_service(
    db: DbSession,
    currency_lookup: Annotated[CountryCurrencyLookup, Depends(get_currency_lookup)],
) -> CompanyService:
    return CompanyService(db, currency_lookup=currency_lookup)


# Type aliases for cleaner dependency injection
Expenses = Annotated[ExpenseService, Depends(get_expense_service)]
Companies = Annotated[CompanyService, Depends(get_company_service)]

"""Pytest fixtures for expense engine tests."""

from __future__ import annotations

import datetime
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from expense_engine.models import Base, Company, User
from expense_engine.providers import (
    StaticCountryCurrencies,
    StaticDocumentExtractor,
    StaticRateConverter,
)
from expense_engine.services import (
    ExpenseDraft,
    ExpenseService,
    RuleInput,
    RuleService,
    WorkflowStepInput,
)

# Use in-memory SQLite for tests (with async support)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine():
    """Create a fresh test database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


# ============================================================================
# Company and people
# ============================================================================


def _user(company: Company, email: str, role: str, manager: User | None = None) -> User:
    first, _, last = email.partition("@")[0].partition(".")
    return User(
        company_id=company.company_id,
        email=email,
        first_name=first.title(),
        last_name=(last or "user").title(),
        role=role,
        manager_id=manager.user_id if manager else None,
        is_active=True,
    )


@pytest.fixture
async def company(session: AsyncSession) -> Company:
    company = Company(name="Acme Corp", currency="USD", country="United States")
    session.add(company)
    await session.flush()
    return company


@pytest.fixture
async def admin(session: AsyncSession, company: Company) -> User:
    user = _user(company, "ada.admin@acme.test", "admin")
    session.add(user)
    await session.flush()
    return user


@pytest.fixture
async def manager(session: AsyncSession, company: Company) -> User:
    """M: the employee's line manager."""
    user = _user(company, "mia.manager@acme.test", "manager")
    session.add(user)
    await session.flush()
    return user


@pytest.fixture
async def employee(session: AsyncSession, company: Company, manager: User) -> User:
    user = _user(company, "eve.employee@acme.test", "employee", manager=manager)
    session.add(user)
    await session.flush()
    return user


@pytest.fixture
async def loner(session: AsyncSession, company: Company) -> User:
    """Employee without a manager."""
    user = _user(company, "lou.loner@acme.test", "employee")
    session.add(user)
    await session.flush()
    return user


@pytest.fixture
async def approver_a(session: AsyncSession, company: Company) -> User:
    user = _user(company, "amir.approver@acme.test", "manager")
    session.add(user)
    await session.flush()
    return user


@pytest.fixture
async def approver_b(session: AsyncSession, company: Company) -> User:
    user = _user(company, "bea.approver@acme.test", "manager")
    session.add(user)
    await session.flush()
    return user


@pytest.fixture
async def approver_c(session: AsyncSession, company: Company) -> User:
    user = _user(company, "cal.approver@acme.test", "manager")
    session.add(user)
    await session.flush()
    return user


# ============================================================================
# Services
# ============================================================================


@pytest.fixture
def converter() -> StaticRateConverter:
    return StaticRateConverter({("EUR", "USD"): Decimal("1.10")})


@pytest.fixture
def currency_lookup() -> StaticCountryCurrencies:
    return StaticCountryCurrencies({"India": "INR", "Germany": "EUR", "United States": "USD"})


@pytest.fixture
def extractor() -> StaticDocumentExtractor:
    return StaticDocumentExtractor(
        records=[
            {
                "merchantName": "Cafe Luna",
                "amount": 42.5,
                "currency": "eur",
                "date": "2024-03-14",
                "category": "Food",
                "description": "Team lunch",
                "expenseType": "Meal",
            },
            {"amount": "18.00"},
        ]
    )


@pytest.fixture
def expense_service(
    session: AsyncSession,
    converter: StaticRateConverter,
    extractor: StaticDocumentExtractor,
) -> ExpenseService:
    return ExpenseService(session, converter=converter, extractor=extractor)


@pytest.fixture
def make_rule(session: AsyncSession, company: Company):
    """Factory creating a rule from ``(approver, step_number)`` pairs."""

    async def factory(
        steps: list[tuple[User, int]],
        is_manager_approver: bool = False,
        priority: int = 0,
        name: str = "Default rule",
        **kwargs,
    ):
        return await RuleService(session).create_rule(
            company.company_id,
            RuleInput(
                name=name,
                is_manager_approver=is_manager_approver,
                priority=priority,
                steps=[WorkflowStepInput(user.user_id, number) for user, number in steps],
                **kwargs,
            ),
        )

    return factory


@pytest.fixture
def make_draft():
    """Factory for a manual expense draft."""

    def factory(**overrides) -> ExpenseDraft:
        fields = {
            "amount": Decimal("120.00"),
            "currency": "USD",
            "category": "Travel",
            "description": "Taxi to client site",
            "expense_date": datetime.date(2024, 3, 14),
            "merchant_name": "City Cabs",
        }
        fields.update(overrides)
        return ExpenseDraft(**fields)

    return factory

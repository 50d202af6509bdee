"""Company users: employees, their managers, and admins."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from expense_engine.exceptions import NotFoundError, ValidationError
from expense_engine.models import Company, User

logger = logging.getLogger(__name__)

ROLES = ("admin", "manager", "employee")


@dataclass
class UserInput:
    """Fields of a new user."""

    email: str
    first_name: str
    last_name: str
    role: str = "employee"
    manager_id: UUID | None = None


class UserService:
    """Service for managing users within a company."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_company(self, company_id: UUID) -> Company:
        company = await self.session.get(Company, company_id)
        if company is None:
            raise NotFoundError("Company", company_id)
        return company

    async def get_user(self, user_id: UUID, company_id: UUID | None = None) -> User:
        """Load a user, optionally requiring company membership."""
        user = await self.session.get(User, user_id)
        if user is None or (company_id is not None and user.company_id != company_id):
            raise NotFoundError("User", user_id)
        return user

    async def create_user(self, company_id: UUID, data: UserInput) -> User:
        """Create a user in the company.

        Raises:
            ValidationError: duplicate email, unknown role, or invalid manager
        """
        email = data.email.strip().lower()
        existing = await self.session.execute(select(User.user_id).where(User.email == email))
        if existing.scalar_one_or_none() is not None:
            raise ValidationError("Email already exists", field="email")

        self._check_role(data.role)
        if data.manager_id is not None:
            await self._check_manager(company_id, data.manager_id)

        user = User(
            company_id=company_id,
            email=email,
            first_name=data.first_name,
            last_name=data.last_name,
            role=data.role,
            manager_id=data.manager_id,
            is_active=True,
        )
        self.session.add(user)
        await self.session.flush()
        logger.info("Created %s %s in company %s", user.role, user.user_id, company_id)
        return user

    async def update_user(
        self,
        company_id: UUID,
        user_id: UUID,
        role: str | None = None,
        manager_id: UUID | None = None,
        clear_manager: bool = False,
        is_active: bool | None = None,
    ) -> User:
        """Change a user's role, manager, or active flag."""
        user = await self.get_user(user_id, company_id)

        if role is not None:
            self._check_role(role)
            user.role = role
        if clear_manager:
            user.manager_id = None
        elif manager_id is not None:
            if manager_id == user_id:
                raise ValidationError("A user cannot manage themselves", field="manager_id")
            await self._check_manager(company_id, manager_id)
            user.manager_id = manager_id
        if is_active is not None:
            user.is_active = is_active

        await self.session.flush()
        return user

    async def list_users(self, company_id: UUID) -> list[User]:
        result = await self.session.execute(
            select(User)
            .where(User.company_id == company_id)
            .order_by(User.last_name, User.first_name)
        )
        return list(result.scalars().all())

    async def list_managers(self, company_id: UUID) -> list[User]:
        """Active managers of the company."""
        result = await self.session.execute(
            select(User)
            .where(
                User.company_id == company_id,
                User.role == "manager",
                User.is_active.is_(True),
            )
            .order_by(User.last_name, User.first_name)
        )
        return list(result.scalars().all())

    def _check_role(self, role: str) -> None:
        if role not in ROLES:
            raise ValidationError(f"Unknown role '{role}'", field="role")

    async def _check_manager(self, company_id: UUID, manager_id: UUID) -> None:
        manager = await self.session.get(User, manager_id)
        if (
            manager is None
            or manager.company_id != company_id
            or manager.role != "manager"
            or not manager.is_active
        ):
            raise ValidationError("Invalid manager ID", field="manager_id")

"""Tests for user management."""

from uuid import uuid4

import pytest

from expense_engine.exceptions import NotFoundError, ValidationError
from expense_engine.services import UserInput, UserService


class TestCreateUser:
    async def test_create_employee_with_manager(self, session, company, manager):
        user = await UserService(session).create_user(
            company.company_id,
            UserInput(
                email=" New.Hire@Acme.test ",
                first_name="New",
                last_name="Hire",
                manager_id=manager.user_id,
            ),
        )

        assert user.email == "new.hire@acme.test"
        assert user.role == "employee"
        assert user.manager_id == manager.user_id
        assert user.is_active is True
        assert user.full_name == "New Hire"

    async def test_duplicate_email(self, session, company, employee):
        with pytest.raises(ValidationError) as exc_info:
            await UserService(session).create_user(
                company.company_id,
                UserInput(email=employee.email, first_name="Dup", last_name="Licate"),
            )
        assert exc_info.value.field == "email"

    async def test_manager_must_have_manager_role(self, session, company, employee):
        with pytest.raises(ValidationError) as exc_info:
            await UserService(session).create_user(
                company.company_id,
                UserInput(
                    email="x@acme.test",
                    first_name="X",
                    last_name="Y",
                    manager_id=employee.user_id,
                ),
            )
        assert exc_info.value.field == "manager_id"

    async def test_unknown_manager(self, session, company):
        with pytest.raises(ValidationError):
            await UserService(session).create_user(
                company.company_id,
                UserInput(
                    email="x@acme.test", first_name="X", last_name="Y", manager_id=uuid4()
                ),
            )

    async def test_unknown_role(self, session, company):
        with pytest.raises(ValidationError) as exc_info:
            await UserService(session).create_user(
                company.company_id,
                UserInput(email="x@acme.test", first_name="X", last_name="Y", role="cfo"),
            )
        assert exc_info.value.field == "role"


class TestUpdateUser:
    async def test_change_role_and_manager(self, session, company, loner, manager):
        user = await UserService(session).update_user(
            company.company_id, loner.user_id, role="manager", manager_id=manager.user_id
        )

        assert user.role == "manager"
        assert user.manager_id == manager.user_id

    async def test_clear_manager(self, session, company, employee):
        user = await UserService(session).update_user(
            company.company_id, employee.user_id, clear_manager=True
        )
        assert user.manager_id is None

    async def test_cannot_manage_self(self, session, company, manager):
        with pytest.raises(ValidationError):
            await UserService(session).update_user(
                company.company_id, manager.user_id, manager_id=manager.user_id
            )

    async def test_deactivate(self, session, company, employee):
        user = await UserService(session).update_user(
            company.company_id, employee.user_id, is_active=False
        )
        assert user.is_active is False

    async def test_user_of_another_company(self, session, employee):
        with pytest.raises(NotFoundError):
            await UserService(session).update_user(uuid4(), employee.user_id, role="admin")


class TestListings:
    async def test_list_managers_only_active_managers(
        self, session, company, manager, approver_a, employee, admin
    ):
        approver_a.is_active = False
        await session.flush()

        managers = await UserService(session).list_managers(company.company_id)

        assert [m.user_id for m in managers] == [manager.user_id]

    async def test_list_users(self, session, company, admin, manager, employee):
        users = await UserService(session).list_users(company.company_id)
        assert {u.user_id for u in users} == {admin.user_id, manager.user_id, employee.user_id}

    async def test_get_company_unknown(self, session):
        with pytest.raises(NotFoundError):
            await UserService(session).get_company(uuid4())

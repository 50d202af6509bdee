"""Tests for expense submission, receipt upload and listings."""

import datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from expense_engine.exceptions import ExtractionError, ValidationError
from expense_engine.models import Expense
from expense_engine.providers import StaticDocumentExtractor, StaticRateConverter
from expense_engine.services import ExpenseService


async def expense_count(session) -> int:
    return await session.scalar(select(func.count()).select_from(Expense))


class TestSubmission:
    async def test_same_currency_not_converted(
        self, expense_service, converter, employee, make_draft
    ):
        result = await expense_service.submit_expense(employee, make_draft())

        assert result.expense.converted_amount == Decimal("120.00")
        assert result.expense.source == "manual"
        assert converter.calls == []

    async def test_foreign_currency_converted_to_company_currency(
        self, expense_service, employee, make_draft
    ):
        result = await expense_service.submit_expense(
            employee, make_draft(amount=Decimal("100.00"), currency="eur")
        )

        assert result.expense.currency == "EUR"
        assert result.expense.amount == Decimal("100.00")
        assert result.expense.converted_amount == Decimal("110.00")

    async def test_conversion_failure_falls_back_to_original_amount(
        self, expense_service, employee, make_draft, caplog
    ):
        with caplog.at_level("WARNING", logger="expense_engine"):
            result = await expense_service.submit_expense(
                employee, make_draft(amount=Decimal("75.50"), currency="JPY")
            )

        assert result.expense.converted_amount == Decimal("75.50")
        assert result.expense.status == "in_review"
        assert "JPY" in caplog.text

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"amount": Decimal("-1")}, "amount"),
            ({"currency": "EURO"}, "currency"),
            ({"category": ""}, "category"),
            ({"description": ""}, "description"),
        ],
    )
    async def test_invalid_draft(
        self, session, expense_service, employee, make_draft, overrides, field
    ):
        with pytest.raises(ValidationError) as exc_info:
            await expense_service.submit_expense(employee, make_draft(**overrides))

        assert exc_info.value.field == field
        assert await expense_count(session) == 0


class TestReceiptUpload:
    async def test_each_record_becomes_an_expense(
        self, session, expense_service, extractor, employee, manager
    ):
        results = await expense_service.submit_from_document(
            employee, b"%PDF-1.7 receipt", "receipt.pdf"
        )

        assert extractor.calls == ["receipt.pdf"]
        assert len(results) == 2
        lunch, unknown = (r.expense for r in results)

        assert lunch.merchant_name == "Cafe Luna"
        assert lunch.currency == "EUR"
        assert lunch.converted_amount == Decimal("46.75")
        assert lunch.expense_date == datetime.date(2024, 3, 14)
        assert lunch.expense_type == "Meal"
        assert lunch.source == "ai"
        assert lunch.status == "in_review"

        # Missing fields fall back to defaults
        assert unknown.merchant_name == "Unknown Merchant"
        assert unknown.currency == "USD"
        assert unknown.category == "General"
        assert unknown.description == "AI extracted expense"
        assert unknown.expense_date == datetime.date.today()
        assert unknown.amount == Decimal("18.00")

        assert all(r.workflow.steps[0].approver_id == manager.user_id for r in results)

    async def test_extraction_failure_creates_nothing(
        self, session, converter, employee
    ):
        service = ExpenseService(
            session, converter, StaticDocumentExtractor(fail_with="model unavailable")
        )

        with pytest.raises(ExtractionError):
            await service.submit_from_document(employee, b"\x89PNG", "receipt.png")

        assert await expense_count(session) == 0

    @pytest.mark.parametrize("filename", ["receipt.txt", "receipt", "notes.docx"])
    async def test_unsupported_file_type(
        self, expense_service, extractor, employee, filename
    ):
        with pytest.raises(ValidationError):
            await expense_service.submit_from_document(employee, b"data", filename)
        assert extractor.calls == []

    async def test_file_too_large(self, session, converter, extractor, employee):
        service = ExpenseService(session, converter, extractor, max_upload_bytes=10)

        with pytest.raises(ValidationError) as exc_info:
            await service.submit_from_document(employee, b"x" * 11, "scan.jpg")

        assert "too large" in str(exc_info.value)
        assert extractor.calls == []

    async def test_extension_is_case_insensitive(self, expense_service, employee):
        results = await expense_service.submit_from_document(employee, b"img", "SCAN.JPEG")
        assert len(results) == 2

    async def test_no_extractor_configured(self, session, employee):
        service = ExpenseService(session, StaticRateConverter())

        with pytest.raises(ValidationError):
            await service.submit_from_document(employee, b"img", "scan.png")


class TestListings:
    async def test_pending_steps_exclude_closed_expenses(
        self,
        session,
        expense_service,
        employee,
        approver_a,
        approver_b,
        make_rule,
        make_draft,
    ):
        await make_rule([(approver_a, 1), (approver_b, 2)])
        open_expense = (await expense_service.submit_expense(employee, make_draft())).expense
        closed = (await expense_service.submit_expense(employee, make_draft())).expense

        closed_steps = {
            s.step_number: s
            for s in await expense_service.list_pending_steps_for(approver_b.user_id)
            if s.expense_id == closed.expense_id
        }
        await expense_service.decide(
            closed_steps[2].approval_step_id, approver_b, "approved"
        )

        pending = await expense_service.list_pending_steps_for(approver_a.user_id)

        # A's step on the approved expense is still pending but hidden
        assert [s.expense_id for s in pending] == [open_expense.expense_id]
        assert pending[0].expense.status == "in_review"

    async def test_pending_steps_oldest_expense_first(
        self, session, expense_service, employee, manager, make_draft
    ):
        first = (await expense_service.submit_expense(employee, make_draft())).expense
        first.created_at = first.created_at - datetime.timedelta(hours=1)
        await session.flush()
        second = (await expense_service.submit_expense(employee, make_draft())).expense

        pending = await expense_service.list_pending_steps_for(manager.user_id)

        assert [s.expense_id for s in pending] == [first.expense_id, second.expense_id]

    async def test_all_pending_steps_listed_not_only_current(
        self,
        expense_service,
        employee,
        manager,
        make_rule,
        make_draft,
        approver_a,
    ):
        await make_rule([(approver_a, 1), (manager, 2)], is_manager_approver=True)
        await expense_service.submit_expense(employee, make_draft())

        pending = await expense_service.list_pending_steps_for(manager.user_id)

        assert sorted(s.step_number for s in pending) == [0, 2]

    async def test_list_for_employee_and_company(
        self, expense_service, employee, loner, make_draft
    ):
        await expense_service.submit_expense(employee, make_draft())
        await expense_service.submit_expense(loner, make_draft())

        own = await expense_service.list_for_employee(employee.user_id)
        assert [e.employee_id for e in own] == [employee.user_id]
        assert len(own[0].approval_steps) == 1

        everything = await expense_service.list_for_company(employee.company_id)
        assert len(everything) == 2

        pending_only = await expense_service.list_for_company(
            employee.company_id, status="pending"
        )
        assert [e.employee_id for e in pending_only] == [loner.user_id]

    async def test_get_expense(self, expense_service, employee, make_draft):
        submitted = (await expense_service.submit_expense(employee, make_draft())).expense

        expense = await expense_service.get_expense(submitted.expense_id)

        assert expense.expense_id == submitted.expense_id
        assert [s.step_number for s in expense.approval_steps] == [1]

"""Expense submission, approval inbox and expense listings."""

from __future__ import annotations

import datetime
import logging
import os
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from expense_engine.exceptions import ConversionError, NotFoundError, ValidationError
from expense_engine.models import ApprovalStep, Company, Expense, User
from expense_engine.providers.base import (
    SUPPORTED_DOCUMENT_TYPES,
    CurrencyConverter,
    DocumentExtractor,
)
from expense_engine.services.approval_service import ApprovalResolver, DecisionResult
from expense_engine.services.rule_service import RuleSelector
from expense_engine.services.workflow_service import (
    InstantiationResult,
    WorkflowInstantiator,
)
from expense_engine.workflow import Decision, ExpenseStatus, StepStatus

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


@dataclass
class ExpenseDraft:
    """Fields of an expense as entered by an employee (or read from a receipt)."""

    amount: Decimal
    currency: str
    category: str
    description: str
    expense_date: datetime.date
    merchant_name: str | None = None
    expense_type: str | None = None
    receipt_url: str | None = None
    source: str = "manual"


@dataclass
class SubmissionResult:
    """A created expense and how its workflow was set up."""

    expense: Expense
    workflow: InstantiationResult


class ExpenseService:
    """Entry point for everything an employee or approver does with expenses.

    Submission creates the expense in ``pending``, converts its amount into
    the company currency, selects the governing rule and materializes the
    approval steps. Decisions are delegated to ApprovalResolver.
    """

    def __init__(
        self,
        session: AsyncSession,
        converter: CurrencyConverter,
        extractor: DocumentExtractor | None = None,
        unrouted_policy: str = "hold",
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
    ):
        self.session = session
        self.converter = converter
        self.extractor = extractor
        self.unrouted_policy = unrouted_policy
        self.max_upload_bytes = max_upload_bytes

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit_expense(self, submitter: User, draft: ExpenseDraft) -> SubmissionResult:
        """Create an expense and instantiate its approval workflow."""
        self._validate_draft(draft)
        company = await self.session.get(Company, submitter.company_id)
        if company is None:
            raise NotFoundError("Company", submitter.company_id)

        currency = draft.currency.upper()
        converted = await self._convert(draft.amount, currency, company.currency)

        expense = Expense(
            employee_id=submitter.user_id,
            company_id=submitter.company_id,
            amount=draft.amount,
            currency=currency,
            converted_amount=converted,
            category=draft.category,
            description=draft.description,
            expense_date=draft.expense_date,
            receipt_url=draft.receipt_url,
            merchant_name=draft.merchant_name,
            expense_type=draft.expense_type,
            source=draft.source,
            status=ExpenseStatus.PENDING.value,
            current_approver_step=0,
        )
        self.session.add(expense)
        await self.session.flush()

        rule = await RuleSelector(self.session).select(submitter.company_id)
        workflow = await WorkflowInstantiator(
            self.session, self.unrouted_policy
        ).instantiate(expense, submitter, rule)

        logger.info(
            "Employee %s submitted expense %s (%s %s, %s)",
            submitter.user_id,
            expense.expense_id,
            expense.amount,
            expense.currency,
            expense.status,
        )
        return SubmissionResult(expense=expense, workflow=workflow)

    async def submit_from_document(
        self, submitter: User, content: bytes, filename: str
    ) -> list[SubmissionResult]:
        """Extract expenses from a receipt and submit each one.

        Extraction runs before anything is written, so a failed extraction
        creates no expense.

        Raises:
            ValidationError: unsupported file type, empty or oversized file
            ExtractionError: the extractor could not read the document
        """
        ext = os.path.splitext(filename or "")[1].lower()
        if ext not in SUPPORTED_DOCUMENT_TYPES:
            raise ValidationError(
                "Unsupported file type. Allowed: "
                + ", ".join(sorted(e.lstrip(".") for e in SUPPORTED_DOCUMENT_TYPES)),
                field="file",
            )
        if not content:
            raise ValidationError("Uploaded file is empty", field="file")
        if len(content) > self.max_upload_bytes:
            raise ValidationError(
                f"File too large. Maximum size is {self.max_upload_bytes // (1024 * 1024)}MB",
                field="file",
            )
        if self.extractor is None:
            raise ValidationError("Receipt extraction is not configured", field="file")

        records = await self.extractor.extract(content, filename)
        logger.info("Receipt %s yielded %d expense record(s)", filename, len(records))

        results = []
        for record in records:
            draft = ExpenseDraft(
                amount=record.amount,
                currency=record.currency,
                category=record.category,
                description=record.description,
                expense_date=record.date,
                merchant_name=record.merchant_name,
                expense_type=record.expense_type,
                receipt_url=filename,
                source="ai",
            )
            results.append(await self.submit_expense(submitter, draft))
        return results

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    async def decide(
        self,
        step_id: UUID,
        caller: User,
        decision: Decision | str,
        comments: str | None = None,
    ) -> DecisionResult:
        """Record the caller's decision on one of their steps.

        See ApprovalResolver.resolve for the effect on the expense.
        """
        try:
            decision = Decision(decision)
        except ValueError:
            raise ValidationError(
                "Decision must be 'approved' or 'rejected'", field="status"
            )
        return await ApprovalResolver(self.session).resolve(
            step_id, caller.user_id, decision, comments
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_pending_steps_for(self, approver_id: UUID) -> list[ApprovalStep]:
        """Pending steps assigned to an approver whose expense is still in review.

        Every pending step is returned, not only the one matching
        ``current_approver_step``.
        """
        result = await self.session.execute(
            select(ApprovalStep)
            .join(Expense, ApprovalStep.expense_id == Expense.expense_id)
            .where(
                ApprovalStep.approver_id == approver_id,
                ApprovalStep.status == StepStatus.PENDING.value,
                Expense.status == ExpenseStatus.IN_REVIEW.value,
            )
            .options(selectinload(ApprovalStep.expense))
            .order_by(Expense.created_at, ApprovalStep.step_number)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_for_employee(self, employee_id: UUID) -> list[Expense]:
        """An employee's own expenses, newest first."""
        result = await self.session.execute(
            select(Expense)
            .where(Expense.employee_id == employee_id)
            .options(selectinload(Expense.approval_steps))
            .order_by(Expense.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_for_company(
        self, company_id: UUID, status: str | None = None
    ) -> list[Expense]:
        query = (
            select(Expense)
            .where(Expense.company_id == company_id)
            .options(selectinload(Expense.approval_steps))
        )
        if status:
            query = query.where(Expense.status == status)
        result = await self.session.execute(
            query.order_by(Expense.created_at.desc()).execution_options(
                populate_existing=True
            )
        )
        return list(result.scalars().all())

    async def list_unrouted(self, company_id: UUID) -> list[Expense]:
        """Pending expenses with no approval steps."""
        result = await self.session.execute(
            select(Expense)
            .where(
                Expense.company_id == company_id,
                Expense.status == ExpenseStatus.PENDING.value,
                ~Expense.approval_steps.any(),
            )
            .options(selectinload(Expense.approval_steps))
            .order_by(Expense.created_at)
        )
        return list(result.scalars().all())

    async def get_expense(self, expense_id: UUID, company_id: UUID | None = None) -> Expense:
        result = await self.session.execute(
            select(Expense)
            .where(Expense.expense_id == expense_id)
            .options(selectinload(Expense.approval_steps))
            .execution_options(populate_existing=True)
        )
        expense = result.scalar_one_or_none()
        if expense is None or (company_id is not None and expense.company_id != company_id):
            raise NotFoundError("Expense", expense_id)
        return expense

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _validate_draft(self, draft: ExpenseDraft) -> None:
        if draft.amount is None or draft.amount < 0:
            raise ValidationError("Amount must be zero or greater", field="amount")
        if not draft.currency or len(draft.currency) != 3:
            raise ValidationError("Currency must be a 3-letter code", field="currency")
        if not draft.category:
            raise ValidationError("Category is required", field="category")
        if not draft.description:
            raise ValidationError("Description is required", field="description")
        if draft.source not in ("manual", "ai"):
            raise ValidationError(f"Unknown source '{draft.source}'", field="source")

    async def _convert(
        self, amount: Decimal, from_currency: str, to_currency: str
    ) -> Decimal:
        """Convert into the company currency, keeping the original amount on failure."""
        if from_currency == to_currency:
            return amount
        try:
            return await self.converter.convert(amount, from_currency, to_currency)
        except ConversionError as e:
            logger.warning("%s; storing unconverted amount", e)
            return amount

"""Workflow instantiation: materialize approval steps for a new expense."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from expense_engine.models import ApprovalStep, Expense, User
from expense_engine.services.state_machine import ExpenseStateMachine
from expense_engine.workflow import (
    ExpenseStatus,
    StepStatus,
    WorkflowPlan,
    fallback_plan,
    plan_steps,
)

if TYPE_CHECKING:
    from expense_engine.models import ApprovalRule

logger = logging.getLogger(__name__)


@dataclass
class InstantiationResult:
    """Outcome of instantiating the workflow of one expense."""

    expense: Expense
    steps: list[ApprovalStep] = field(default_factory=list)
    unrouted: bool = False
    policy_applied: str | None = None


class WorkflowInstantiator:
    """Creates the approval steps of a submitted expense.

    All steps are created up front in ``pending``; approvers of later steps
    can act immediately. Expenses nobody can approve (no rule and no
    manager) are handled by the unrouted policy:

    - hold: leave the expense pending and report it as unrouted
    - fallback_admin: route it to the company's earliest active admin
    - auto_approve: approve it without review
    """

    def __init__(self, session: AsyncSession, unrouted_policy: str = "hold"):
        self.session = session
        self.unrouted_policy = unrouted_policy

    async def instantiate(
        self,
        expense: Expense,
        submitter: User,
        rule: ApprovalRule | None,
    ) -> InstantiationResult:
        """Create approval steps for ``expense`` and move it to in_review.

        The expense must already be flushed and still pending.
        """
        plan = plan_steps(rule, submitter.manager_id)
        result = InstantiationResult(expense=expense)

        if plan.unrouted:
            plan = await self._handle_unrouted(expense, result)
            if plan.unrouted:
                return result

        for planned in plan.steps:
            step = ApprovalStep(
                expense_id=expense.expense_id,
                approver_id=planned.approver_id,
                step_number=planned.step_number,
                status=StepStatus.PENDING.value,
            )
            self.session.add(step)
            result.steps.append(step)

        ExpenseStateMachine.validate_transition(expense.status, ExpenseStatus.IN_REVIEW)
        expense.status = ExpenseStatus.IN_REVIEW.value
        if plan.current_approver_step is not None:
            expense.current_approver_step = plan.current_approver_step

        await self.session.flush()

        logger.info(
            "Expense %s in review with %d step(s) %s (rule=%s)",
            expense.expense_id,
            len(result.steps),
            [s.step_number for s in result.steps],
            plan.rule_id,
        )
        return result

    async def _handle_unrouted(
        self, expense: Expense, result: InstantiationResult
    ) -> WorkflowPlan:
        """Apply the unrouted policy. Returns the plan to materialize."""
        result.unrouted = True
        result.policy_applied = self.unrouted_policy

        if self.unrouted_policy == "fallback_admin":
            admin_id = await self._fallback_admin_id(expense)
            if admin_id is not None:
                logger.info(
                    "Expense %s has no approver; routing to admin %s",
                    expense.expense_id,
                    admin_id,
                )
                return fallback_plan(admin_id)
            logger.warning(
                "Expense %s has no approver and company %s has no active admin",
                expense.expense_id,
                expense.company_id,
            )
            result.policy_applied = "hold"

        elif self.unrouted_policy == "auto_approve":
            ExpenseStateMachine.validate_transition(
                expense.status, ExpenseStatus.APPROVED, allow_escape=True
            )
            expense.status = ExpenseStatus.APPROVED.value
            await self.session.flush()
            logger.info("Expense %s has no approver; auto-approved", expense.expense_id)
            return WorkflowPlan()

        logger.warning(
            "Expense %s has no approver and stays pending", expense.expense_id
        )
        return WorkflowPlan()

    async def _fallback_admin_id(self, expense: Expense) -> UUID | None:
        result = await self.session.execute(
            select(User.user_id)
            .where(
                User.company_id == expense.company_id,
                User.role == "admin",
                User.is_active.is_(True),
                User.user_id != expense.employee_id,
            )
            .order_by(User.created_at.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

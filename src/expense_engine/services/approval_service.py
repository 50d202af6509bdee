"""Approval resolution: record one decision and recompute the expense state."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from expense_engine.exceptions import AlreadyDecidedError, NotFoundError
from expense_engine.models import ApprovalStep, Expense
from expense_engine.models.base import utcnow
from expense_engine.services.state_machine import (
    ApprovalStepStateMachine,
    ExpenseStateMachine,
)
from expense_engine.workflow import (
    Decision,
    ExpenseStatus,
    Outcome,
    resolve_outcome,
)

logger = logging.getLogger(__name__)


@dataclass
class DecisionResult:
    """Result of resolving one approval decision."""

    step: ApprovalStep
    expense: Expense
    outcome: Outcome
    expense_updated: bool


class ApprovalResolver:
    """Consumes one approver decision at a time.

    Key invariants:
    1. A step leaves pending exactly once (conditional update on status='pending')
    2. Expense writes are conditional on a non-terminal status, so approved and
       rejected are sticky and concurrent terminal writes are idempotent
    3. Only the materialized step set is read; the rule store is not consulted
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def resolve(
        self,
        step_id: UUID,
        approver_id: UUID,
        decision: Decision | str,
        comments: str | None = None,
    ) -> DecisionResult:
        """Record ``decision`` on a step and update its expense.

        Raises:
            NotFoundError: step does not exist or is assigned to someone else
            AlreadyDecidedError: step already left pending
        """
        decision = Decision(decision)

        step = await self.session.get(ApprovalStep, step_id)
        if step is None or step.approver_id != approver_id:
            raise NotFoundError("ApprovalStep", step_id)

        if not ApprovalStepStateMachine.can_decide(step.status):
            raise AlreadyDecidedError(step_id, step.status)

        await self._claim_step(step, decision, comments)

        siblings = await self.get_steps_for_expense(step.expense_id)
        outcome = resolve_outcome(siblings, step.step_number, decision)
        updated = await self.apply_outcome(step.expense_id, outcome)

        expense = await self.session.get(Expense, step.expense_id, populate_existing=True)
        if expense is None:
            raise NotFoundError("Expense", step.expense_id)

        logger.info(
            "Step %s (#%d) of expense %s %s -> %s%s, expense now %s",
            step_id,
            step.step_number,
            step.expense_id,
            decision.value,
            outcome.kind.value,
            "" if updated else " (no-op)",
            expense.status,
        )
        return DecisionResult(
            step=step, expense=expense, outcome=outcome, expense_updated=updated
        )

    async def get_steps_for_expense(self, expense_id: UUID) -> list[ApprovalStep]:
        """All approval steps of an expense, ordered by step number."""
        result = await self.session.execute(
            select(ApprovalStep)
            .where(ApprovalStep.expense_id == expense_id)
            .order_by(ApprovalStep.step_number)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def apply_outcome(self, expense_id: UUID, outcome: Outcome) -> bool:
        """Write an outcome to the expense with a conditional update.

        Returns True if the expense row changed, False if it was already past
        the point this outcome applies to (e.g. already approved).
        """
        target = outcome.target_status
        if target is not None:
            values: dict[str, object] = {"status": target.value}
            sources = ExpenseStateMachine.sources_for(target)
        else:
            values = {"current_approver_step": outcome.next_step_number}
            sources = [ExpenseStatus.IN_REVIEW.value]

        values["updated_at"] = utcnow()
        result = await self.session.execute(
            update(Expense)
            .where(
                Expense.expense_id == expense_id,
                Expense.status.in_(sources),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) > 0

    async def _claim_step(
        self,
        step: ApprovalStep,
        decision: Decision,
        comments: str | None,
    ) -> None:
        """Move a step out of pending, failing if another writer got there first."""
        decided_at = utcnow()
        sources = ApprovalStepStateMachine.sources_for(decision.value)
        result = await self.session.execute(
            update(ApprovalStep)
            .where(
                ApprovalStep.approval_step_id == step.approval_step_id,
                ApprovalStep.status.in_(sources),
            )
            .values(
                status=decision.value,
                comments=comments,
                approved_at=decided_at,
                updated_at=decided_at,
            )
            .execution_options(synchronize_session=False)
        )
        if (result.rowcount or 0) == 0:
            await self.session.refresh(step)
            raise AlreadyDecidedError(step.approval_step_id, step.status)

        set_committed_value(step, "status", decision.value)
        set_committed_value(step, "comments", comments)
        set_committed_value(step, "approved_at", decided_at)
        set_committed_value(step, "updated_at", decided_at)

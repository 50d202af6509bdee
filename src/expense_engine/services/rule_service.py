"""Approval rule store and rule selection."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from expense_engine.exceptions import NotFoundError, ValidationError
from expense_engine.models import ApprovalRule, User, WorkflowStep
from expense_engine.workflow import build_policy, select_rule
from expense_engine.workflow.policy import policy_fields
from expense_engine.workflow.types import MANAGER_STEP_NUMBER

logger = logging.getLogger(__name__)


@dataclass
class WorkflowStepInput:
    """One step of a rule as submitted by an admin."""

    approver_id: UUID | None
    step_number: int | None
    is_required: bool = True


@dataclass
class RuleInput:
    """Fields of a new approval rule."""

    name: str
    rule_type: str = "sequential"
    percentage_required: int | None = None
    specific_approver_id: UUID | None = None
    is_manager_approver: bool = True
    priority: int = 0
    steps: list[WorkflowStepInput] = field(default_factory=list)


class RuleSelector:
    """Loads a company's active rules and picks the one governing new expenses."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def select(self, company_id: UUID) -> ApprovalRule | None:
        """Highest-priority active rule of the company, or None."""
        result = await self.session.execute(
            select(ApprovalRule)
            .where(
                ApprovalRule.company_id == company_id,
                ApprovalRule.is_active.is_(True),
            )
            .order_by(ApprovalRule.priority.desc(), ApprovalRule.created_at.desc())
        )
        rules = list(result.scalars().all())
        rule = select_rule(rules)
        if len(rules) > 1 and rule is not None:
            logger.debug(
                "Company %s has %d active rules; using %s (priority %d)",
                company_id,
                len(rules),
                rule.rule_id,
                rule.priority,
            )
        return rule


class RuleService:
    """CRUD for approval rules and their workflow steps.

    Validation:
    - rule type must be known, with the fields its type needs
    - every step needs an approver from the same company and a step number >= 1
      (0 is reserved for the manager-first step)
    - step numbers are unique within a rule
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_rule(self, company_id: UUID, data: RuleInput) -> ApprovalRule:
        """Create a rule with its workflow steps."""
        if not data.name or not data.name.strip():
            raise ValidationError("Rule name is required", field="name")

        policy = build_policy(
            data.rule_type, data.percentage_required, data.specific_approver_id
        )
        fields = policy_fields(policy)
        if fields["specific_approver_id"] is not None:
            await self._check_approvers(company_id, [fields["specific_approver_id"]])

        steps = await self._build_steps(company_id, data.steps)

        rule = ApprovalRule(
            company_id=company_id,
            name=data.name.strip(),
            is_manager_approver=data.is_manager_approver,
            is_active=True,
            priority=data.priority,
            steps=steps,
            **fields,
        )
        self.session.add(rule)
        await self.session.flush()

        logger.info(
            "Created %s rule %s for company %s with %d step(s)",
            rule.rule_type,
            rule.rule_id,
            company_id,
            len(steps),
        )
        return rule

    async def list_rules(self, company_id: UUID) -> list[ApprovalRule]:
        """All rules of a company, in selection order."""
        result = await self.session.execute(
            select(ApprovalRule)
            .where(ApprovalRule.company_id == company_id)
            .order_by(ApprovalRule.priority.desc(), ApprovalRule.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_rule(self, company_id: UUID, rule_id: UUID) -> ApprovalRule:
        """Load a rule owned by the company."""
        rule = await self.session.get(ApprovalRule, rule_id)
        if rule is None or rule.company_id != company_id:
            raise NotFoundError("ApprovalRule", rule_id)
        return rule

    async def update_rule(
        self,
        company_id: UUID,
        rule_id: UUID,
        is_active: bool | None = None,
        priority: int | None = None,
        steps: list[WorkflowStepInput] | None = None,
    ) -> ApprovalRule:
        """Toggle, re-prioritize, or replace the steps of a rule.

        Replacing steps never touches approval steps already materialized
        for submitted expenses.
        """
        rule = await self.get_rule(company_id, rule_id)

        if is_active is not None:
            rule.is_active = is_active
        if priority is not None:
            rule.priority = priority
        if steps is not None:
            new_steps = await self._build_steps(company_id, steps)
            rule.steps.clear()
            await self.session.flush()
            rule.steps.extend(new_steps)

        await self.session.flush()
        await self.session.refresh(rule)
        logger.info("Updated rule %s", rule_id)
        return rule

    async def delete_rule(self, company_id: UUID, rule_id: UUID) -> None:
        """Delete a rule and its workflow steps."""
        rule = await self.get_rule(company_id, rule_id)
        await self.session.delete(rule)
        await self.session.flush()
        logger.info("Deleted rule %s", rule_id)

    async def _build_steps(
        self, company_id: UUID, steps: list[WorkflowStepInput]
    ) -> list[WorkflowStep]:
        seen: set[int] = set()
        for index, step in enumerate(steps):
            if step.approver_id is None:
                raise ValidationError(
                    f"Step {index + 1} has no approver", field="steps.approver_id"
                )
            if step.step_number is None or step.step_number <= MANAGER_STEP_NUMBER:
                raise ValidationError(
                    f"Step {index + 1} needs a step number of at least 1",
                    field="steps.step_number",
                )
            if step.step_number in seen:
                raise ValidationError(
                    f"Duplicate step number {step.step_number}",
                    field="steps.step_number",
                )
            seen.add(step.step_number)

        await self._check_approvers(company_id, [s.approver_id for s in steps])

        return [
            WorkflowStep(
                approver_id=step.approver_id,
                step_number=step.step_number,
                is_required=step.is_required,
            )
            for step in steps
        ]

    async def _check_approvers(self, company_id: UUID, approver_ids: list[UUID]) -> None:
        wanted = set(approver_ids)
        if not wanted:
            return
        result = await self.session.execute(
            select(User.user_id).where(
                User.user_id.in_(wanted),
                User.company_id == company_id,
                User.is_active.is_(True),
            )
        )
        found = set(result.scalars().all())
        missing = wanted - found
        if missing:
            raise ValidationError(
                f"Unknown or inactive approver(s): {', '.join(sorted(str(m) for m in missing))}",
                field="approver_id",
            )

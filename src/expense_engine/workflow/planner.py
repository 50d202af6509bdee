"""Plan the approval steps of a newly submitted expense."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from expense_engine.workflow.types import (
    DEFAULT_STEP_NUMBER,
    MANAGER_STEP_NUMBER,
    PlannedStep,
    StepSource,
    WorkflowPlan,
)

if TYPE_CHECKING:
    from expense_engine.models import ApprovalRule


def plan_steps(rule: ApprovalRule | None, manager_id: UUID | None) -> WorkflowPlan:
    """Build the step plan for one expense.

    Without a rule the submitter's manager approves alone at step 1. With a
    rule, a manager-first step 0 is added when the rule asks for it and the
    submitter has a manager, followed by one step per workflow step. All
    steps are planned at once; none waits for a predecessor.

    An empty plan means the expense is unrouted.
    """
    if rule is None:
        if manager_id is None:
            return WorkflowPlan()
        return WorkflowPlan(
            steps=[PlannedStep(manager_id, DEFAULT_STEP_NUMBER, StepSource.MANAGER)],
            current_approver_step=DEFAULT_STEP_NUMBER,
        )

    plan = WorkflowPlan(rule_id=rule.rule_id)

    if rule.is_manager_approver and manager_id is not None:
        plan.steps.append(
            PlannedStep(manager_id, MANAGER_STEP_NUMBER, StepSource.MANAGER)
        )
        plan.current_approver_step = MANAGER_STEP_NUMBER

    for workflow_step in sorted(rule.steps, key=lambda s: s.step_number):
        plan.steps.append(
            PlannedStep(workflow_step.approver_id, workflow_step.step_number)
        )

    return plan


def fallback_plan(approver_id: UUID) -> WorkflowPlan:
    """Single-step plan routing an unrouted expense to a fallback approver."""
    return WorkflowPlan(
        steps=[PlannedStep(approver_id, DEFAULT_STEP_NUMBER, StepSource.FALLBACK)],
        current_approver_step=DEFAULT_STEP_NUMBER,
    )

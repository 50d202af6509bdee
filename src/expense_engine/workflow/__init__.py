"""Pure approval workflow logic: rule selection, step planning, resolution."""

from expense_engine.workflow.planner import fallback_plan, plan_steps
from expense_engine.workflow.policy import (
    Hybrid,
    Percentage,
    RulePolicy,
    Sequential,
    SpecificApprover,
    build_policy,
)
from expense_engine.workflow.resolver import next_pending_step, resolve_outcome
from expense_engine.workflow.selector import select_rule
from expense_engine.workflow.types import (
    Decision,
    ExpenseStatus,
    Outcome,
    OutcomeKind,
    PlannedStep,
    RuleType,
    StepSource,
    StepStatus,
    WorkflowPlan,
)

__all__ = [
    "Decision",
    "ExpenseStatus",
    "Hybrid",
    "Outcome",
    "OutcomeKind",
    "Percentage",
    "PlannedStep",
    "RulePolicy",
    "RuleType",
    "Sequential",
    "SpecificApprover",
    "StepSource",
    "StepStatus",
    "WorkflowPlan",
    "build_policy",
    "fallback_plan",
    "next_pending_step",
    "plan_steps",
    "resolve_outcome",
    "select_rule",
]

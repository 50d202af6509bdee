"""Expense engine services."""

from expense_engine.services.state_machine import (
    ApprovalStepStateMachine,
    ExpenseStateMachine,
    InvalidTransitionError,
)
from expense_engine.services.approval_service import ApprovalResolver, DecisionResult
from expense_engine.services.workflow_service import InstantiationResult, WorkflowInstantiator
from expense_engine.services.rule_service import (
    RuleInput,
    RuleSelector,
    RuleService,
    WorkflowStepInput,
)
from expense_engine.services.user_service import UserInput, UserService
from expense_engine.services.company_service import CompanyService, OnboardingResult
from expense_engine.services.expense_service import (
    ExpenseDraft,
    ExpenseService,
    SubmissionResult,
)

__all__ = [
    "ApprovalStepStateMachine",
    "ExpenseStateMachine",
    "InvalidTransitionError",
    "ApprovalResolver",
    "DecisionResult",
    "InstantiationResult",
    "WorkflowInstantiator",
    "RuleInput",
    "RuleSelector",
    "RuleService",
    "WorkflowStepInput",
    "UserInput",
    "UserService",
    "CompanyService",
    "OnboardingResult",
    "ExpenseDraft",
    "ExpenseService",
    "SubmissionResult",
]

"""Type definitions for the approval workflow."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID


class ExpenseStatus(str, Enum):
    """Expense status values."""

    PENDING = "pending"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class StepStatus(str, Enum):
    """Approval step status values."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Decision(str, Enum):
    """An approver's decision on one step."""

    APPROVED = "approved"
    REJECTED = "rejected"


class RuleType(str, Enum):
    """Declared resolution semantics of an approval rule."""

    SEQUENTIAL = "sequential"
    PERCENTAGE = "percentage"
    SPECIFIC_APPROVER = "specific_approver"
    HYBRID = "hybrid"


class StepSource(str, Enum):
    """Where a planned approval step came from."""

    MANAGER = "manager"
    RULE = "rule"
    FALLBACK = "fallback"


MANAGER_STEP_NUMBER = 0
DEFAULT_STEP_NUMBER = 1


@dataclass(frozen=True)
class PlannedStep:
    """An approval step to be materialized for an expense."""

    approver_id: UUID
    step_number: int
    source: StepSource = StepSource.RULE


@dataclass
class WorkflowPlan:
    """Result of planning the approval steps of one expense."""

    steps: list[PlannedStep] = field(default_factory=list)
    current_approver_step: int | None = None
    rule_id: UUID | None = None

    @property
    def unrouted(self) -> bool:
        """True when nobody was assigned to approve the expense."""
        return not self.steps


class OutcomeKind(str, Enum):
    """What a single decision does to its expense."""

    APPROVE = "approve"
    REJECT = "reject"
    ADVANCE = "advance"


@dataclass(frozen=True)
class Outcome:
    """Expense-level consequence of one step decision."""

    kind: OutcomeKind
    next_step_number: int | None = None

    @property
    def target_status(self) -> ExpenseStatus | None:
        """Expense status this outcome moves to, or None for an advance."""
        if self.kind == OutcomeKind.APPROVE:
            return ExpenseStatus.APPROVED
        if self.kind == OutcomeKind.REJECT:
            return ExpenseStatus.REJECTED
        return None

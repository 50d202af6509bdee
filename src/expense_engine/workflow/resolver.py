"""Resolution of a single approval decision.

Completion is "highest number clears last": after an approval the expense is
approved as soon as no step numbered above the decided one is still pending.
Lower-numbered steps are not consulted, so approving the highest step first
completes the expense while earlier steps are still pending. There is no
sequential gating, and percentage or specific-approver rules resolve exactly
like sequential ones.
"""

from __future__ import annotations

from typing import Iterable, Protocol

from expense_engine.workflow.policy import (
    Hybrid,
    Percentage,
    RulePolicy,
    Sequential,
    SpecificApprover,
)
from expense_engine.workflow.types import Decision, Outcome, OutcomeKind, StepStatus


class StepLike(Protocol):
    """Anything carrying a step number and status."""

    step_number: int
    status: str


def next_pending_step(steps: Iterable[StepLike], after_step_number: int) -> int | None:
    """Lowest step number above ``after_step_number`` that is still pending."""
    candidates = [
        step.step_number
        for step in steps
        if step.step_number > after_step_number and step.status == StepStatus.PENDING
    ]
    return min(candidates) if candidates else None


def _highest_number_clears_last(
    steps: Iterable[StepLike], decided_step_number: int
) -> Outcome:
    pending = next_pending_step(steps, decided_step_number)
    if pending is None:
        return Outcome(OutcomeKind.APPROVE)
    return Outcome(OutcomeKind.ADVANCE, next_step_number=pending)


def resolve_outcome(
    steps: Iterable[StepLike],
    decided_step_number: int,
    decision: Decision | str,
    policy: RulePolicy | None = None,
) -> Outcome:
    """Decide what one step decision does to its expense.

    Args:
        steps: every approval step of the expense, as read after the decision
        decided_step_number: step number of the step just decided
        decision: approved or rejected
        policy: rule policy; every variant currently resolves the same way

    Returns:
        REJECT on any rejection, otherwise APPROVE when no higher-numbered
        step is pending, else ADVANCE to the lowest such step.
    """
    if Decision(decision) == Decision.REJECTED:
        return Outcome(OutcomeKind.REJECT)

    if policy is None or isinstance(policy, Sequential):
        return _highest_number_clears_last(steps, decided_step_number)
    if isinstance(policy, (Percentage, SpecificApprover, Hybrid)):
        # Thresholds and mandatory approvers are declared but not enforced.
        return _highest_number_clears_last(steps, decided_step_number)
    raise TypeError(f"Unknown rule policy: {policy!r}")

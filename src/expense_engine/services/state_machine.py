"""Expense and approval step state machines with transition validation."""

from __future__ import annotations

from expense_engine.exceptions import ExpenseEngineError
from expense_engine.workflow.types import ExpenseStatus, StepStatus


class InvalidTransitionError(ExpenseEngineError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class ExpenseStateMachine:
    """State machine for expense status transitions.

    Allowed transitions:
    - pending → in_review (workflow instantiated)
    - in_review → approved
    - in_review → rejected

    Escape transitions (only for unrouted expenses under the auto_approve policy):
    - pending → approved
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        ExpenseStatus.PENDING: [ExpenseStatus.IN_REVIEW],
        ExpenseStatus.IN_REVIEW: [ExpenseStatus.APPROVED, ExpenseStatus.REJECTED],
        ExpenseStatus.APPROVED: [],  # Terminal state
        ExpenseStatus.REJECTED: [],  # Terminal state
    }

    ESCAPE_TRANSITIONS: dict[str, list[str]] = {
        ExpenseStatus.PENDING: [ExpenseStatus.APPROVED],
    }

    TERMINAL = {
        ExpenseStatus.APPROVED,
        ExpenseStatus.REJECTED,
    }

    @classmethod
    def can_transition(
        cls, from_status: str, to_status: str, allow_escape: bool = False
    ) -> bool:
        """Check if a transition is valid."""
        allowed = list(cls.VALID_TRANSITIONS.get(from_status, []))
        if allow_escape:
            allowed += cls.ESCAPE_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(
        cls, from_status: str, to_status: str, allow_escape: bool = False
    ) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status, allow_escape):
            reason = "expense is closed" if cls.is_terminal(from_status) else None
            raise InvalidTransitionError(from_status, to_status, reason)

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        """Check if no further transitions are possible."""
        return status in cls.TERMINAL

    @classmethod
    def sources_for(cls, to_status: str) -> list[str]:
        """Statuses a regular transition into ``to_status`` may start from.

        Used as the guard of conditional updates so a concurrent writer
        can never move an expense out of a terminal state.
        """
        return [
            ExpenseStatus(from_status).value
            for from_status, targets in cls.VALID_TRANSITIONS.items()
            if to_status in targets
        ]

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])


class ApprovalStepStateMachine:
    """An approval step leaves pending exactly once."""

    VALID_TRANSITIONS: dict[str, list[str]] = {
        StepStatus.PENDING: [StepStatus.APPROVED, StepStatus.REJECTED],
        StepStatus.APPROVED: [],
        StepStatus.REJECTED: [],
    }

    @classmethod
    def can_decide(cls, status: str) -> bool:
        """Check if a decision may still be recorded."""
        return bool(cls.VALID_TRANSITIONS.get(status))

    @classmethod
    def sources_for(cls, to_status: str) -> list[str]:
        """Statuses a step recording ``to_status`` may still be in.

        Guard of the claim update: once a step left pending, no other
        decision can match it.
        """
        return [
            StepStatus(from_status).value
            for from_status, targets in cls.VALID_TRANSITIONS.items()
            if to_status in targets
        ]

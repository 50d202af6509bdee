"""Tagged variants for approval rule types.

A rule's ``rule_type`` string is parsed into one of four policy variants.
Only the step set decides completion today: percentage thresholds and
specific approvers are carried on the variants but no resolution path reads
them (see ``resolver.resolve_outcome``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union
from uuid import UUID

from expense_engine.exceptions import ValidationError
from expense_engine.workflow.types import RuleType


@dataclass(frozen=True)
class Sequential:
    """Steps in step-number order."""


@dataclass(frozen=True)
class Percentage:
    """A share of approvers must approve."""

    threshold: int


@dataclass(frozen=True)
class SpecificApprover:
    """One named approver must approve."""

    approver_id: UUID


@dataclass(frozen=True)
class Hybrid:
    """Percentage threshold, a specific approver, or both."""

    threshold: int | None = None
    approver_id: UUID | None = None


RulePolicy = Union[Sequential, Percentage, SpecificApprover, Hybrid]


def _check_threshold(value: int | None, rule_type: RuleType) -> int:
    if value is None:
        raise ValidationError(
            f"percentage_required is required for '{rule_type.value}' rules",
            field="percentage_required",
        )
    if not 1 <= value <= 100:
        raise ValidationError(
            f"percentage_required must be between 1 and 100, got {value}",
            field="percentage_required",
        )
    return value


def build_policy(
    rule_type: str,
    percentage_required: int | None = None,
    specific_approver_id: UUID | None = None,
) -> RulePolicy:
    """Parse raw rule fields into a policy variant.

    Raises:
        ValidationError: unknown rule type, or a field the type needs is missing
    """
    try:
        kind = RuleType(rule_type)
    except ValueError:
        raise ValidationError(f"Unknown rule type '{rule_type}'", field="rule_type")

    if kind == RuleType.SEQUENTIAL:
        return Sequential()

    if kind == RuleType.PERCENTAGE:
        return Percentage(threshold=_check_threshold(percentage_required, kind))

    if kind == RuleType.SPECIFIC_APPROVER:
        if specific_approver_id is None:
            raise ValidationError(
                "specific_approver_id is required for 'specific_approver' rules",
                field="specific_approver_id",
            )
        return SpecificApprover(approver_id=specific_approver_id)

    if percentage_required is None and specific_approver_id is None:
        raise ValidationError(
            "hybrid rules need percentage_required, specific_approver_id, or both",
            field="rule_type",
        )
    threshold = (
        _check_threshold(percentage_required, kind)
        if percentage_required is not None
        else None
    )
    return Hybrid(threshold=threshold, approver_id=specific_approver_id)


def policy_fields(policy: RulePolicy) -> dict[str, object]:
    """Column values for a policy; fields that don't apply to the type are None."""
    if isinstance(policy, Percentage):
        return {
            "rule_type": RuleType.PERCENTAGE.value,
            "percentage_required": policy.threshold,
            "specific_approver_id": None,
        }
    if isinstance(policy, SpecificApprover):
        return {
            "rule_type": RuleType.SPECIFIC_APPROVER.value,
            "percentage_required": None,
            "specific_approver_id": policy.approver_id,
        }
    if isinstance(policy, Hybrid):
        return {
            "rule_type": RuleType.HYBRID.value,
            "percentage_required": policy.threshold,
            "specific_approver_id": policy.approver_id,
        }
    return {
        "rule_type": RuleType.SEQUENTIAL.value,
        "percentage_required": None,
        "specific_approver_id": None,
    }

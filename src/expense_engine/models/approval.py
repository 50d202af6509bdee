"""Approval rule, workflow step, and approval step models."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from expense_engine.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from expense_engine.models.expense import Expense


# ===== Rule store =====


class ApprovalRule(Base, TimestampMixin):
    """Company-level rule choosing which approvers govern an expense."""

    __tablename__ = "approval_rule"

    rule_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.company_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    rule_type: Mapped[str] = mapped_column(String, nullable=False, default="sequential")
    percentage_required: Mapped[int | None] = mapped_column(Integer, nullable=True)
    specific_approver_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("app_user.user_id"),
        nullable=True,
    )
    is_manager_approver: Mapped[bool] = mapped_column(default=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint(
            "rule_type IN ('sequential', 'percentage', 'specific_approver', 'hybrid')",
            name="approval_rule_type_check",
        ),
        CheckConstraint(
            "percentage_required IS NULL OR "
            "(percentage_required >= 1 AND percentage_required <= 100)",
            name="approval_rule_percentage_check",
        ),
    )

    # Relationships
    steps: Mapped[list[WorkflowStep]] = relationship(
        back_populates="rule",
        cascade="all, delete-orphan",
        order_by="WorkflowStep.step_number",
        lazy="selectin",
    )


class WorkflowStep(Base, TimestampMixin):
    """Template entry of a rule: one approver at one step number."""

    __tablename__ = "workflow_step"

    workflow_step_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    rule_id: Mapped[UUID] = mapped_column(
        ForeignKey("approval_rule.rule_id", ondelete="CASCADE"),
        nullable=False,
    )
    approver_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.user_id"),
        nullable=False,
    )
    step_number: Mapped[int] = mapped_column(Integer, nullable=False)
    is_required: Mapped[bool] = mapped_column(default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("rule_id", "step_number", name="workflow_step_rule_number_unique"),
    )

    # Relationships
    rule: Mapped[ApprovalRule] = relationship(back_populates="steps")


# ===== Materialized approvals =====


class ApprovalStep(Base, TimestampMixin):
    """A concrete decision one approver owes on one expense."""

    __tablename__ = "approval_step"

    approval_step_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    expense_id: Mapped[UUID] = mapped_column(
        ForeignKey("expense.expense_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    approver_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.user_id"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    step_number: Mapped[int] = mapped_column(Integer, nullable=False)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint("expense_id", "step_number", name="approval_step_expense_number_unique"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="approval_step_status_check",
        ),
    )

    # Relationships
    expense: Mapped[Expense] = relationship(back_populates="approval_steps")

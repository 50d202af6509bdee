"""SQLAlchemy ORM models."""

from expense_engine.models.approval import ApprovalRule, ApprovalStep, WorkflowStep
from expense_engine.models.base import Base, TimestampMixin
from expense_engine.models.company import Company, User
from expense_engine.models.expense import Expense

__all__ = [
    "Base",
    "TimestampMixin",
    "Company",
    "User",
    "ApprovalRule",
    "WorkflowStep",
    "ApprovalStep",
    "Expense",
]

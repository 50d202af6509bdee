"""Expense approval engine: rule-driven, multi-step approval of expense claims."""

__version__ = "0.1.0"

"""API routes."""

from expense_engine.api.routes.approval_rules import router as approval_rules_router
from expense_engine.api.routes.companies import router as companies_router
from expense_engine.api.routes.expenses import router as expenses_router
from expense_engine.api.routes.health import router as health_router
from expense_engine.api.routes.users import router as users_router

__all__ = [
    "approval_rules_router",
    "companies_router",
    "expenses_router",
    "health_router",
    "users_router",
]

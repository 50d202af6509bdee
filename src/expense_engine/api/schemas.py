"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# User schemas
# ============================================================================


class UserCreate(BaseModel):
    """Schema for creating a user in the caller's company."""

    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+$")
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    role: Literal["admin", "manager", "employee"] = "employee"
    manager_id: UUID | None = None


class UserUpdate(BaseModel):
    """Schema for updating a user. Omitted fields are left unchanged."""

    role: Literal["admin", "manager", "employee"] | None = None
    manager_id: UUID | None = None
    clear_manager: bool = False
    is_active: bool | None = None


class UserResponse(BaseModel):
    """Schema for user response."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    company_id: UUID
    email: str
    first_name: str
    last_name: str
    role: str
    manager_id: UUID | None = None
    is_active: bool
    created_at: datetime


class UserListResponse(BaseModel):
    items: list[UserResponse]
    total: int


# ============================================================================
# Company schemas
# ============================================================================


class CompanyAdminCreate(BaseModel):
    """The first admin of a new company."""

    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+$")
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)


class CompanyCreate(BaseModel):
    """Schema for onboarding a company."""

    name: str = Field(min_length=1)
    country: str = Field(min_length=1)
    admin: CompanyAdminCreate


class CompanyResponse(BaseModel):
    """Schema for company response."""

    model_config = ConfigDict(from_attributes=True)

    company_id: UUID
    name: str
    country: str
    currency: str
    created_at: datetime


class OnboardingResponse(BaseModel):
    company: CompanyResponse
    admin: UserResponse


# ============================================================================
# Approval rule schemas
# ============================================================================


class WorkflowStepCreate(BaseModel):
    """One approver step of a rule."""

    approver_id: UUID
    step_number: int
    is_required: bool = True


class WorkflowStepResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    workflow_step_id: UUID
    approver_id: UUID
    step_number: int
    is_required: bool


class ApprovalRuleCreate(BaseModel):
    """Schema for creating an approval rule."""

    name: str = Field(min_length=1)
    rule_type: Literal["sequential", "percentage", "specific_approver", "hybrid"] = (
        "sequential"
    )
    percentage_required: int | None = None
    specific_approver_id: UUID | None = None
    is_manager_approver: bool = True
    priority: int = 0
    steps: list[WorkflowStepCreate] = Field(default_factory=list)


class ApprovalRuleUpdate(BaseModel):
    """Schema for updating a rule: toggle, re-prioritize, or replace steps."""

    is_active: bool | None = None
    priority: int | None = None
    steps: list[WorkflowStepCreate] | None = None


class ApprovalRuleResponse(BaseModel):
    """Schema for approval rule response."""

    model_config = ConfigDict(from_attributes=True)

    rule_id: UUID
    company_id: UUID
    name: str
    rule_type: str
    percentage_required: int | None = None
    specific_approver_id: UUID | None = None
    is_manager_approver: bool
    is_active: bool
    priority: int
    steps: list[WorkflowStepResponse] = Field(default_factory=list)
    created_at: datetime


class ApprovalRuleListResponse(BaseModel):
    items: list[ApprovalRuleResponse]
    total: int


# ============================================================================
# Expense schemas
# ============================================================================


class ExpenseCreate(BaseModel):
    """Schema for submitting an expense."""

    amount: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    category: str = Field(min_length=1)
    description: str = Field(min_length=1)
    expense_date: date
    merchant_name: str | None = None
    expense_type: str | None = None
    receipt_url: str | None = None


class ApprovalStepResponse(BaseModel):
    """Schema for an approval step."""

    model_config = ConfigDict(from_attributes=True)

    approval_step_id: UUID
    expense_id: UUID
    approver_id: UUID
    step_number: int
    status: str
    comments: str | None = None
    approved_at: datetime | None = None


class ExpenseResponse(BaseModel):
    """Schema for expense response."""

    model_config = ConfigDict(from_attributes=True)

    expense_id: UUID
    employee_id: UUID
    company_id: UUID
    amount: Decimal
    currency: str
    converted_amount: Decimal | None = None
    category: str
    description: str
    expense_date: date
    merchant_name: str | None = None
    expense_type: str | None = None
    receipt_url: str | None = None
    source: str
    status: str
    current_approver_step: int
    created_at: datetime
    updated_at: datetime


class ExpenseDetailResponse(ExpenseResponse):
    """Expense with its approval steps."""

    approval_steps: list[ApprovalStepResponse] = Field(default_factory=list)


class ExpenseListResponse(BaseModel):
    items: list[ExpenseDetailResponse]
    total: int


class SubmissionResponse(BaseModel):
    """Schema for a submitted expense."""

    expense: ExpenseResponse
    steps: list[ApprovalStepResponse]
    unrouted: bool = False
    policy_applied: str | None = None


class ReceiptUploadResponse(BaseModel):
    """Schema for expenses created from an uploaded receipt."""

    items: list[SubmissionResponse]
    total: int


# ============================================================================
# Approval schemas
# ============================================================================


class PendingApprovalResponse(BaseModel):
    """A pending step joined with its expense."""

    step: ApprovalStepResponse
    expense: ExpenseResponse


class PendingApprovalListResponse(BaseModel):
    items: list[PendingApprovalResponse]
    total: int


class DecisionRequest(BaseModel):
    """Schema for approving or rejecting a step."""

    status: Literal["approved", "rejected"]
    comments: str | None = None


class DecisionResponse(BaseModel):
    """Schema for decision response."""

    step: ApprovalStepResponse
    expense: ExpenseResponse
    outcome: str
    next_step_number: int | None = None
    expense_updated: bool


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None

"""Expense API endpoints: submission, receipt upload, approvals and listings."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, File, Path, Query, UploadFile, status

from expense_engine.api.dependencies import (
    AdminUser,
    ApproverUser,
    CurrentUser,
    DbSession,
    Expenses,
)
from expense_engine.api.schemas import (
    ApprovalStepResponse,
    DecisionRequest,
    DecisionResponse,
    ErrorResponse,
    ExpenseCreate,
    ExpenseDetailResponse,
    ExpenseListResponse,
    ExpenseResponse,
    PendingApprovalListResponse,
    PendingApprovalResponse,
    ReceiptUploadResponse,
    SubmissionResponse,
)
from expense_engine.exceptions import NotFoundError
from expense_engine.services import ExpenseDraft, SubmissionResult

router = APIRouter(prefix="/expenses", tags=["expenses"])


def _submission_response(result: SubmissionResult) -> SubmissionResponse:
    return SubmissionResponse(
        expense=ExpenseResponse.model_validate(result.expense),
        steps=[ApprovalStepResponse.model_validate(s) for s in result.workflow.steps],
        unrouted=result.workflow.unrouted,
        policy_applied=result.workflow.policy_applied,
    )


# ============================================================================
# Submission
# ============================================================================


@router.post(
    "",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
)
async def submit_expense(
    db: DbSession,
    user: CurrentUser,
    expenses: Expenses,
    payload: ExpenseCreate,
) -> SubmissionResponse:
    """Submit an expense and start its approval workflow."""
    draft = ExpenseDraft(**payload.model_dump())
    result = await expenses.submit_expense(user, draft)
    await db.commit()
    return _submission_response(result)


@router.post(
    "/upload-receipt",
    response_model=ReceiptUploadResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def upload_receipt(
    db: DbSession,
    user: CurrentUser,
    expenses: Expenses,
    file: Annotated[UploadFile, File()],
) -> ReceiptUploadResponse:
    """Create one expense per line item read from an uploaded receipt."""
    content = await file.read()
    results = await expenses.submit_from_document(user, content, file.filename or "")
    await db.commit()
    items = [_submission_response(r) for r in results]
    return ReceiptUploadResponse(items=items, total=len(items))


# ============================================================================
# Listings
# ============================================================================


@router.get("/my-expenses", response_model=ExpenseListResponse)
async def my_expenses(user: CurrentUser, expenses: Expenses) -> ExpenseListResponse:
    """The caller's own expenses, newest first."""
    rows = await expenses.list_for_employee(user.user_id)
    return ExpenseListResponse(
        items=[ExpenseDetailResponse.model_validate(e) for e in rows],
        total=len(rows),
    )


@router.get("/all", response_model=ExpenseListResponse)
async def all_expenses(
    user: AdminUser,
    expenses: Expenses,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> ExpenseListResponse:
    """Every expense of the caller's company."""
    rows = await expenses.list_for_company(user.company_id, status=status_filter)
    return ExpenseListResponse(
        items=[ExpenseDetailResponse.model_validate(e) for e in rows],
        total=len(rows),
    )


@router.get("/unrouted", response_model=ExpenseListResponse)
async def unrouted_expenses(user: AdminUser, expenses: Expenses) -> ExpenseListResponse:
    """Pending expenses nobody was assigned to approve."""
    rows = await expenses.list_unrouted(user.company_id)
    return ExpenseListResponse(
        items=[ExpenseDetailResponse.model_validate(e) for e in rows],
        total=len(rows),
    )


# ============================================================================
# Approvals
# ============================================================================


@router.get("/pending-approvals", response_model=PendingApprovalListResponse)
async def pending_approvals(
    user: ApproverUser, expenses: Expenses
) -> PendingApprovalListResponse:
    """Pending steps assigned to the caller, oldest expense first."""
    steps = await expenses.list_pending_steps_for(user.user_id)
    items = [
        PendingApprovalResponse(
            step=ApprovalStepResponse.model_validate(step),
            expense=ExpenseResponse.model_validate(step.expense),
        )
        for step in steps
    ]
    return PendingApprovalListResponse(items=items, total=len(items))


@router.put(
    "/approvals/{step_id}",
    response_model=DecisionResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def decide(
    db: DbSession,
    user: ApproverUser,
    expenses: Expenses,
    step_id: Annotated[UUID, Path()],
    payload: DecisionRequest,
) -> DecisionResponse:
    """Approve or reject one of the caller's approval steps."""
    result = await expenses.decide(step_id, user, payload.status, payload.comments)
    await db.commit()
    return DecisionResponse(
        step=ApprovalStepResponse.model_validate(result.step),
        expense=ExpenseResponse.model_validate(result.expense),
        outcome=result.outcome.kind.value,
        next_step_number=result.outcome.next_step_number,
        expense_updated=result.expense_updated,
    )


@router.get(
    "/{expense_id}",
    response_model=ExpenseDetailResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_expense(
    user: CurrentUser,
    expenses: Expenses,
    expense_id: Annotated[UUID, Path()],
) -> ExpenseDetailResponse:
    """One expense with its approval steps.

    Employees only see their own expenses; managers and admins see the
    whole company.
    """
    expense = await expenses.get_expense(expense_id, company_id=user.company_id)
    if user.role == "employee" and expense.employee_id != user.user_id:
        raise NotFoundError("Expense", expense_id)
    return ExpenseDetailResponse.model_validate(expense)

"""Approval rule API endpoints.

Any user may list the rules of their company; changing them is admin only.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from expense_engine.api.dependencies import AdminUser, CurrentUser, DbSession
from expense_engine.api.schemas import (
    ApprovalRuleCreate,
    ApprovalRuleListResponse,
    ApprovalRuleResponse,
    ApprovalRuleUpdate,
    ErrorResponse,
    WorkflowStepCreate,
)
from expense_engine.services import RuleInput, RuleService, WorkflowStepInput

router = APIRouter(prefix="/approval-rules", tags=["approval-rules"])


def _step_inputs(steps: list[WorkflowStepCreate]) -> list[WorkflowStepInput]:
    return [
        WorkflowStepInput(
            approver_id=s.approver_id,
            step_number=s.step_number,
            is_required=s.is_required,
        )
        for s in steps
    ]


@router.post(
    "",
    response_model=ApprovalRuleResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
)
async def create_rule(
    db: DbSession,
    admin: AdminUser,
    payload: ApprovalRuleCreate,
) -> ApprovalRuleResponse:
    """Create an approval rule with its workflow steps."""
    rule = await RuleService(db).create_rule(
        admin.company_id,
        RuleInput(
            name=payload.name,
            rule_type=payload.rule_type,
            percentage_required=payload.percentage_required,
            specific_approver_id=payload.specific_approver_id,
            is_manager_approver=payload.is_manager_approver,
            priority=payload.priority,
            steps=_step_inputs(payload.steps),
        ),
    )
    await db.commit()
    return ApprovalRuleResponse.model_validate(rule)


@router.get("", response_model=ApprovalRuleListResponse)
async def list_rules(db: DbSession, user: CurrentUser) -> ApprovalRuleListResponse:
    """List the company's rules in selection order."""
    rules = await RuleService(db).list_rules(user.company_id)
    return ApprovalRuleListResponse(
        items=[ApprovalRuleResponse.model_validate(r) for r in rules],
        total=len(rules),
    )


@router.put(
    "/{rule_id}",
    response_model=ApprovalRuleResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def update_rule(
    db: DbSession,
    admin: AdminUser,
    rule_id: Annotated[UUID, Path()],
    payload: ApprovalRuleUpdate,
) -> ApprovalRuleResponse:
    """Toggle, re-prioritize, or replace the steps of a rule."""
    rule = await RuleService(db).update_rule(
        admin.company_id,
        rule_id,
        is_active=payload.is_active,
        priority=payload.priority,
        steps=_step_inputs(payload.steps) if payload.steps is not None else None,
    )
    await db.commit()
    return ApprovalRuleResponse.model_validate(rule)


@router.delete(
    "/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_rule(
    db: DbSession,
    admin: AdminUser,
    rule_id: Annotated[UUID, Path()],
) -> None:
    """Delete a rule. Expenses already in review keep their steps."""
    await RuleService(db).delete_rule(admin.company_id, rule_id)
    await db.commit()

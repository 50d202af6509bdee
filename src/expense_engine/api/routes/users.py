"""User management API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from expense_engine.api.dependencies import AdminUser, CurrentUser, DbSession
from expense_engine.api.schemas import (
    ErrorResponse,
    UserCreate,
    UserListResponse,
    UserResponse,
    UserUpdate,
)
from expense_engine.services import UserInput, UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
)
async def create_user(
    db: DbSession,
    admin: AdminUser,
    payload: UserCreate,
) -> UserResponse:
    """Create a user in the admin's company."""
    user = await UserService(db).create_user(
        admin.company_id, UserInput(**payload.model_dump())
    )
    await db.commit()
    return UserResponse.model_validate(user)


@router.get("", response_model=UserListResponse)
async def list_users(db: DbSession, admin: AdminUser) -> UserListResponse:
    users = await UserService(db).list_users(admin.company_id)
    return UserListResponse(
        items=[UserResponse.model_validate(u) for u in users],
        total=len(users),
    )


@router.get("/managers", response_model=UserListResponse)
async def list_managers(db: DbSession, user: CurrentUser) -> UserListResponse:
    """Active managers of the caller's company."""
    managers = await UserService(db).list_managers(user.company_id)
    return UserListResponse(
        items=[UserResponse.model_validate(m) for m in managers],
        total=len(managers),
    )


@router.put(
    "/{user_id}",
    response_model=UserResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def update_user(
    db: DbSession,
    admin: AdminUser,
    user_id: Annotated[UUID, Path()],
    payload: UserUpdate,
) -> UserResponse:
    """Change a user's role, manager, or active flag."""
    user = await UserService(db).update_user(
        admin.company_id,
        user_id,
        role=payload.role,
        manager_id=payload.manager_id,
        clear_manager=payload.clear_manager,
        is_active=payload.is_active,
    )
    await db.commit()
    return UserResponse.model_validate(user)

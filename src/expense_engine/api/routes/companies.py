"""Company onboarding API endpoints."""

from fastapi import APIRouter, status

from expense_engine.api.dependencies import Companies, CurrentUser, DbSession
from expense_engine.api.schemas import (
    CompanyCreate,
    CompanyResponse,
    ErrorResponse,
    OnboardingResponse,
    UserResponse,
)
from expense_engine.services import UserInput, UserService

router = APIRouter(prefix="/companies", tags=["companies"])


@router.post(
    "",
    response_model=OnboardingResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
)
async def create_company(
    db: DbSession,
    companies: Companies,
    payload: CompanyCreate,
) -> OnboardingResponse:
    """Onboard a company and its first admin.

    No caller identity is needed: this is how the first user of a company
    comes to exist. The company currency is looked up from the country.
    """
    result = await companies.create_company(
        payload.name,
        payload.country,
        UserInput(**payload.admin.model_dump()),
    )
    await db.commit()
    return OnboardingResponse(
        company=CompanyResponse.model_validate(result.company),
        admin=UserResponse.model_validate(result.admin),
    )


@router.get("/me", response_model=CompanyResponse)
async def my_company(db: DbSession, user: CurrentUser) -> CompanyResponse:
    """The caller's company."""
    company = await UserService(db).get_company(user.company_id)
    return CompanyResponse.model_validate(company)

"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from expense_engine.api.routes import (
    approval_rules_router,
    companies_router,
    expenses_router,
    health_router,
    users_router,
)
from expense_engine.config import get_settings
from expense_engine.database import dispose_db, init_db
from expense_engine.exceptions import (
    AlreadyDecidedError,
    ExpenseEngineError,
    ExtractionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from expense_engine.logging_config import configure_logging
from expense_engine.services.state_machine import InvalidTransitionError

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[ExpenseEngineError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    AlreadyDecidedError: status.HTTP_409_CONFLICT,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
    ExtractionError: status.HTTP_502_BAD_GATEWAY,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    settings = get_settings()
    configure_logging(settings.log_level)
    init_db(settings.database_url)
    logger.info("Expense engine started (unrouted policy: %s)", settings.unrouted_expense_policy)
    yield
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Expense Approval Engine API",
        description="Multi-step expense approval workflows",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(ExpenseEngineError)
    async def engine_exception_handler(
        request: Request, exc: ExpenseEngineError
    ) -> JSONResponse:
        """Map the engine's error taxonomy to HTTP status codes."""
        status_code = next(
            (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
            status.HTTP_400_BAD_REQUEST,
        )
        context = None
        if isinstance(exc, ValidationError) and exc.field:
            context = {"field": exc.field}
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "code": exc.code, "context": context},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(companies_router, prefix="/api/v1")
    app.include_router(expenses_router, prefix="/api/v1")
    app.include_router(approval_rules_router, prefix="/api/v1")
    app.include_router(users_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()

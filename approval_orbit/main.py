"""Approval Orbit: Main FastAPI Application.

Multi-stage approval tracking for card mockups: workflow stages with
assigned reviewers, per-stage approval counts and a final approval gate.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import api_router
from .core import close_db, get_settings, init_db
from .schemas import ErrorResponse
from .services import (
    ApprovalError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)

settings = get_settings()
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    UnauthorizedError: (status.HTTP_401_UNAUTHORIZED, "unauthorized"),
    NotFoundError: (status.HTTP_404_NOT_FOUND, "not_found"),
    ForbiddenError: (status.HTTP_403_FORBIDDEN, "forbidden"),
    InvalidStateError: (status.HTTP_400_BAD_REQUEST, "invalid_state"),
    ValidationError: (status.HTTP_400_BAD_REQUEST, "validation_error"),
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    logger.info(f"Starting {settings.app_name} {settings.app_version} ({settings.environment})")

    # Production schema is managed by migrations
    if settings.environment != "production":
        await init_db()
    yield
    # Shutdown
    await close_db()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    ## Approval Orbit API

    Multi-stage approval tracking for card mockups.

    ### Key Features

    - **Workflows**: Ordered, colored review stages owned by an organization.
    - **Stage Reviewers**: Per-project reviewer assignments for each stage.
    - **Approval Progress**: Required vs received approvals per stage, advanced automatically.
    - **Final Approval**: A terminal sign-off by the project owner or an organization admin.
    - **Multi-Tenancy**: Strict organization isolation with row-level security.

    ### Authentication

    All endpoints require a valid JWT token in the `Authorization: Bearer <token>` header.

    For organization-scoped operations, include the `X-Organization-ID` header.
    """,
    openapi_url=f"{settings.api_prefix}/openapi.json",
    docs_url=f"{settings.api_prefix}/docs",
    redoc_url=f"{settings.api_prefix}/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH", "HEAD"],
    allow_headers=["*"],
    max_age=86400,
)


@app.exception_handler(ApprovalError)
async def approval_error_handler(request: Request, exc: ApprovalError):
    """Render service-layer errors as ErrorResponse."""
    status_code, error = ERROR_STATUS.get(
        type(exc), (status.HTTP_400_BAD_REQUEST, "bad_request")
    )
    body = ErrorResponse(
        error=error,
        message=exc.message,
        details=[],
        current_status=exc.current_status if isinstance(exc, InvalidStateError) else None,
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}")

    message = "An unexpected error occurred"
    if settings.debug or settings.environment != "production":
        message = f"{message}: {str(exc)[:200]}"

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="internal_error",
            message=message,
            details=[],
        ).model_dump(exclude_none=True),
    )


# Health check endpoint
@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.app_version}


# Include API routes
app.include_router(api_router, prefix=settings.api_prefix)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "approval_orbit.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )

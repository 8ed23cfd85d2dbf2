"""Base schemas and common types for the Approval Orbit API."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict


# =============================================================================
# BASE SCHEMAS
# =============================================================================


class OrbitBaseModel(BaseModel):
    """Base model with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,  # Enable ORM mode
        populate_by_name=True,
        use_enum_values=True,
    )


class TimestampMixin(BaseModel):
    """Mixin for created/updated timestamps."""

    created_at: datetime
    updated_at: datetime | None = None


# =============================================================================
# ERROR RESPONSES
# =============================================================================


class ErrorDetail(OrbitBaseModel):
    """Detailed error information."""

    field: str | None = None
    message: str
    code: str


class ErrorResponse(OrbitBaseModel):
    """Standard error response format."""

    error: str
    message: str
    details: list[ErrorDetail] = []
    current_status: str | None = None
    request_id: str | None = None


class MessageResponse(OrbitBaseModel):
    success: bool = True
    message: str
    data: dict[str, Any] | None = None


# =============================================================================
# COMMON REFERENCE SCHEMAS
# =============================================================================


class UserRef(OrbitBaseModel):
    """Minimal user reference for embedding in responses."""

    id: UUID
    name: str
    email: str | None = None
    avatar_url: str | None = None

"""Base schemas and common types for the Feedback Desk API."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr

from ..models import UserRole


# =============================================================================
# BASE SCHEMAS
# =============================================================================


class FeedbackBaseModel(BaseModel):
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
# PAGINATION
# =============================================================================


class PaginatedResponse(FeedbackBaseModel):
    """Wrapper for paginated responses."""

    items: list[Any]
    total: int
    page: int
    page_size: int
    total_pages: int


# =============================================================================
# ERROR RESPONSES
# =============================================================================


class ErrorDetail(FeedbackBaseModel):
    """Detailed error information."""

    field: str | None = None
    message: str
    code: str


class ErrorResponse(FeedbackBaseModel):
    """Standard error response format."""

    error: str
    message: str
    details: list[ErrorDetail] = []
    request_id: str | None = None


# =============================================================================
# COMMON REFERENCE SCHEMAS
# =============================================================================


class UserRef(FeedbackBaseModel):
    """Minimal user reference for embedding in responses."""

    id: str
    name: str
    email: EmailStr
    role: UserRole
    team_id: UUID | None = None

"""Pydantic schemas for the audit log."""

from datetime import datetime
from uuid import UUID

from ..models import AuditAction
from .base import FeedbackBaseModel, PaginatedResponse


# =============================================================================
# AUDIT LOG SCHEMAS
# =============================================================================


class AuditLogEntry(FeedbackBaseModel):
    """A single audit log entry."""

    id: UUID
    user_id: str
    user_role: str
    action: AuditAction
    entity_type: str
    entity_id: str
    details: dict
    created_at: datetime


class AuditLogResponse(PaginatedResponse):
    """Paginated audit log response."""

    items: list[AuditLogEntry]

"""Feedback Desk API Schemas.

Schemas are organized by domain:
- base: Common types, pagination, errors
- feedback: Tickets, lifecycle operation requests, form templates
- notifications: Inbox and broadcasts
- audit: Audit log
"""

from .audit import AuditLogEntry, AuditLogResponse
from .base import (
    ErrorDetail,
    ErrorResponse,
    FeedbackBaseModel,
    PaginatedResponse,
    TimestampMixin,
    UserRef,
)
from .feedback import (
    ApproveResolutionRequest,
    AssignToMemberRequest,
    AssignToTeamRequest,
    BulkAssignItemResponse,
    BulkAssignRequest,
    BulkAssignResponse,
    FeedbackCreate,
    FeedbackCreatedResponse,
    FeedbackListResponse,
    FeedbackResponse,
    FormField,
    FormFieldValidation,
    FormTemplateResponse,
    SuggestionsRequest,
    SuggestionsResponse,
    UpdateStatusRequest,
)
from .notifications import (
    BroadcastRequest,
    BroadcastResponse,
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
)

__all__ = [
    # Base
    "FeedbackBaseModel",
    "TimestampMixin",
    "PaginatedResponse",
    "ErrorDetail",
    "ErrorResponse",
    "UserRef",
    # Feedback
    "FeedbackCreate",
    "FeedbackCreatedResponse",
    "FeedbackResponse",
    "FeedbackListResponse",
    "AssignToTeamRequest",
    "BulkAssignRequest",
    "BulkAssignItemResponse",
    "BulkAssignResponse",
    "AssignToMemberRequest",
    "UpdateStatusRequest",
    "ApproveResolutionRequest",
    "SuggestionsRequest",
    "SuggestionsResponse",
    "FormField",
    "FormFieldValidation",
    "FormTemplateResponse",
    # Notifications
    "NotificationResponse",
    "NotificationListResponse",
    "MarkAllReadResponse",
    "BroadcastRequest",
    "BroadcastResponse",
    # Audit
    "AuditLogEntry",
    "AuditLogResponse",
]

"""SQLAlchemy ORM Models for Feedback Desk."""

from .base import Base, JSONType, TimestampMixin, UUIDMixin
from .models import (
    # Enums
    ApprovalStatus,
    AuditAction,
    NotificationPriority,
    NotificationType,
    TicketPriority,
    TicketStatus,
    UserRole,
    # Directory
    Pod,
    Team,
    User,
    # Forms
    FormTemplate,
    # Tickets
    Feedback,
    # Side effects
    AuditLog,
    Notification,
)

__all__ = [
    # Base
    "Base",
    "JSONType",
    "UUIDMixin",
    "TimestampMixin",
    # Enums
    "UserRole",
    "TicketStatus",
    "TicketPriority",
    "ApprovalStatus",
    "AuditAction",
    "NotificationType",
    "NotificationPriority",
    # Directory
    "User",
    "Team",
    "Pod",
    # Forms
    "FormTemplate",
    # Tickets
    "Feedback",
    # Side effects
    "AuditLog",
    "Notification",
]

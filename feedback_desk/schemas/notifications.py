"""Pydantic schemas for the notification inbox and broadcasts."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from ..models import NotificationPriority, NotificationType
from .base import FeedbackBaseModel, PaginatedResponse


class NotificationResponse(FeedbackBaseModel):
    id: UUID
    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority
    read: bool
    read_at: datetime | None = None
    feedback_id: str | None = None
    details: dict = Field(default_factory=dict)
    created_at: datetime


class NotificationListResponse(PaginatedResponse):
    items: list[NotificationResponse]
    unread: int


class MarkAllReadResponse(FeedbackBaseModel):
    updated: int


class BroadcastRequest(FeedbackBaseModel):
    """Admin broadcast. Empty target_roles (or "all") reaches every user."""

    title: str = Field(..., max_length=255)
    message: str
    target_roles: list[str] = Field(default_factory=list)
    priority: NotificationPriority = NotificationPriority.MEDIUM
    entity_type: str = "user"
    entity_id: str | None = None


class BroadcastResponse(FeedbackBaseModel):
    message: str
    recipient_count: int

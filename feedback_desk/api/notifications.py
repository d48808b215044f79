"""Notification inbox routes (/me/notifications)."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from ..core import CurrentUserDep, SessionDep
from ..schemas import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
)
from ..services import LifecycleError, NotificationService
from .errors import to_http_exception

router = APIRouter(prefix="/me/notifications", tags=["notifications"])


def get_notification_service(session: SessionDep) -> NotificationService:
    return NotificationService(session)


NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    current_user: CurrentUserDep,
    service: NotificationServiceDep,
    unread_only: bool = Query(default=False),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
):
    """The caller's notifications, newest first."""
    result = await service.list_for_user(
        current_user,
        unread_only=unread_only,
        page=page,
        page_size=page_size,
    )
    return NotificationListResponse(
        items=[NotificationResponse.model_validate(n) for n in result.items],
        total=result.total,
        unread=result.unread,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
    )


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    current_user: CurrentUserDep,
    service: NotificationServiceDep,
):
    updated = await service.mark_all_read(current_user)
    return MarkAllReadResponse(updated=updated)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: UUID,
    current_user: CurrentUserDep,
    service: NotificationServiceDep,
):
    try:
        notification = await service.mark_read(current_user, notification_id)
    except LifecycleError as e:
        raise to_http_exception(e) from e
    return NotificationResponse.model_validate(notification)

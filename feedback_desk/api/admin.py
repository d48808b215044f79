"""Admin routes: broadcasts and the audit log."""

from datetime import datetime

from fastapi import APIRouter, Query

from ..core import AdminDep, SessionDep
from ..models import AuditAction
from ..schemas import (
    AuditLogEntry,
    AuditLogResponse,
    BroadcastRequest,
    BroadcastResponse,
)
from ..services import (
    AuditService,
    BroadcastInput,
    LifecycleError,
    NotificationService,
)
from .errors import to_http_exception

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/notifications/broadcast", response_model=BroadcastResponse)
async def broadcast_notification(
    request: BroadcastRequest,
    current_user: AdminDep,  # Only admins can broadcast
    session: SessionDep,
):
    """Send a notification to every user in the target roles."""
    try:
        count = await NotificationService(session).broadcast(
            current_user,
            BroadcastInput(
                title=request.title,
                message=request.message,
                target_roles=request.target_roles,
                priority=request.priority,
                entity_type=request.entity_type,
                entity_id=request.entity_id,
            ),
        )
    except LifecycleError as e:
        raise to_http_exception(e) from e

    return BroadcastResponse(
        message="Broadcast notification sent successfully",
        recipient_count=count,
    )


@router.get("/audit-logs", response_model=AuditLogResponse)
async def get_audit_logs(
    current_user: AdminDep,  # Only admins can view audit logs
    session: SessionDep,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    user_id: str | None = None,
    action: AuditAction | None = None,
    entity_type: str | None = None,
    entity_id: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
):
    """Query the audit log with filters. Requires admin privileges."""
    offset = (page - 1) * page_size

    try:
        entries, total = await AuditService(session).get_audit_log(
            current_user,
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            start_date=start_date,
            end_date=end_date,
            limit=page_size,
            offset=offset,
        )
    except LifecycleError as e:
        raise to_http_exception(e) from e

    return AuditLogResponse(
        items=[AuditLogEntry.model_validate(e) for e in entries],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=(total + page_size - 1) // page_size,
    )

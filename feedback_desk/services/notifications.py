"""Notification inbox and admin broadcasts.

Lifecycle notifications are written by the side-effect dispatcher. This module
covers the recipient's side (listing, read state) and the one notification
flow that is a primary write rather than a side effect: admin broadcasts.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import (
    AuditAction,
    Notification,
    NotificationPriority,
    NotificationType,
    User,
    UserRole,
)
from .dispatcher import (
    AuditEntry,
    NotificationDraft,
    SideEffectDispatcher,
    SqlNotificationSink,
)
from .errors import NotFoundError, ValidationError
from .state_machine import Operation, require_permission

logger = logging.getLogger(__name__)

ALL_ROLES = "all"


@dataclass
class BroadcastInput:
    """Input for an admin broadcast."""
    title: str
    message: str
    target_roles: list[str] | None = None  # None, [] or ["all"] reaches everyone
    priority: NotificationPriority = NotificationPriority.MEDIUM
    entity_type: str = "user"
    entity_id: str | None = None


@dataclass
class NotificationPage:
    items: list[Notification]
    total: int
    unread: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0


class NotificationService:
    """Recipient inbox operations plus admin broadcast."""

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: SideEffectDispatcher | None = None,
    ):
        self.session = session
        self.dispatcher = dispatcher or SideEffectDispatcher(session)

    # =========================================================================
    # INBOX
    # =========================================================================

    async def list_for_user(
        self,
        user: User,
        unread_only: bool = False,
        page: int = 1,
        page_size: int = 20,
    ) -> NotificationPage:
        """The user's own notifications, newest first."""
        query = select(Notification).where(Notification.user_id == user.id)
        if unread_only:
            query = query.where(Notification.read.is_(False))

        total = (
            await self.session.execute(select(func.count()).select_from(query.subquery()))
        ).scalar_one()
        unread = (
            await self.session.execute(
                select(func.count())
                .select_from(Notification)
                .where(Notification.user_id == user.id, Notification.read.is_(False))
            )
        ).scalar_one()

        result = await self.session.execute(
            query.order_by(Notification.created_at.desc(), Notification.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return NotificationPage(
            items=list(result.scalars().all()),
            total=total,
            unread=unread,
            page=page,
            page_size=page_size,
        )

    async def mark_read(self, user: User, notification_id: UUID) -> Notification:
        """Mark one notification read. Only its recipient may do so."""
        notification = await self.session.get(Notification, notification_id)
        # Someone else's notification looks the same as a missing one
        if not notification or notification.user_id != user.id:
            raise NotFoundError(f"Notification {notification_id} not found")

        if not notification.read:
            notification.read = True
            notification.read_at = datetime.now(timezone.utc)
            await self.session.flush()
        return notification

    async def mark_all_read(self, user: User) -> int:
        """Mark every unread notification of the user read; returns the count."""
        result = await self.session.execute(
            update(Notification)
            .where(Notification.user_id == user.id, Notification.read.is_(False))
            .values(read=True, read_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    # =========================================================================
    # BROADCAST
    # =========================================================================

    async def broadcast(self, actor: User, input: BroadcastInput) -> int:
        """
        Send one notification to every user in the target roles.

        Flow:
        1. Permission check (admin / co_admin)
        2. Validate title, message and roles
        3. Insert one notification per recipient
        4. Log audit event

        Returns the number of recipients.
        """
        require_permission(Operation.BROADCAST, actor.role)

        errors: dict[str, str] = {}
        if not input.title or not input.title.strip():
            errors["title"] = "required"
        if not input.message or not input.message.strip():
            errors["message"] = "required"
        roles = [r for r in (input.target_roles or []) if r != ALL_ROLES]
        valid_roles = {r.value for r in UserRole}
        unknown = [r for r in roles if r not in valid_roles]
        if unknown:
            errors["target_roles"] = f"unknown roles: {', '.join(unknown)}"
        if errors:
            raise ValidationError("Invalid broadcast request", fields=errors)

        query = select(User.id).order_by(User.id)
        if roles and ALL_ROLES not in (input.target_roles or []):
            query = query.where(User.role.in_([UserRole(r) for r in roles]))
        recipient_ids = list((await self.session.execute(query)).scalars().all())

        drafts = [
            NotificationDraft(
                user_id=recipient_id,
                type=NotificationType.BROADCAST,
                title=input.title,
                message=input.message,
                priority=NotificationPriority(input.priority),
            )
            for recipient_id in recipient_ids
        ]
        if drafts:
            await SqlNotificationSink(self.session).create_many(drafts)

        logger.info(f"Broadcast '{input.title}' sent to {len(drafts)} users by {actor.id}")

        await self.dispatcher.record_audit(
            AuditEntry(
                user_id=actor.id,
                user_role=UserRole(actor.role).value,
                action=AuditAction.BROADCAST_NOTIFICATION_SENT,
                entity_type=input.entity_type,
                entity_id=input.entity_id or "broadcast",
                details={
                    "title": input.title,
                    "targetRoles": input.target_roles or [ALL_ROLES],
                    "priority": NotificationPriority(input.priority).value,
                    "recipientCount": len(drafts),
                },
            )
        )
        return len(drafts)

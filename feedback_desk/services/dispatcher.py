"""
Side-Effect Dispatcher: notifications and audit entries for ticket transitions.

The dispatcher runs after the primary ticket write has succeeded. It owns two
decisions:
1. Who hears about a transition (recipient resolution)
2. What the audit trail records about it

Each hook runs inside its own SAVEPOINT and its own try/except. A failing hook
is logged and skipped; it never rolls back the ticket update and never stops
the next hook from running.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import (
    AuditAction,
    AuditLog,
    Feedback,
    Notification,
    NotificationPriority,
    NotificationType,
    Team,
    User,
    UserRole,
)
from .state_machine import RESOLUTION_STATUSES

logger = logging.getLogger(__name__)

ENTITY_FEEDBACK = "feedback"


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class NotificationDraft:
    """A notification waiting to be written."""
    user_id: str
    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.MEDIUM
    feedback_id: str | None = None
    details: dict = field(default_factory=dict)


@dataclass
class AuditEntry:
    """One append-only audit record."""
    user_id: str
    user_role: str
    action: AuditAction
    entity_type: str
    entity_id: str
    details: dict = field(default_factory=dict)


@dataclass
class TransitionEvent:
    """A completed lifecycle operation on one ticket."""
    action: AuditAction
    actor: User
    ticket: Feedback  # State after the write
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class DispatchReport:
    """What the hooks managed to do."""
    notifications_sent: int = 0
    audit_written: bool = False
    failures: list[str] = field(default_factory=list)


# =============================================================================
# SINKS
# =============================================================================


class NotificationSink(ABC):
    """Destination for notifications."""

    @abstractmethod
    async def create(self, draft: NotificationDraft) -> None:
        pass

    async def create_many(self, drafts: list[NotificationDraft]) -> int:
        for draft in drafts:
            await self.create(draft)
        return len(drafts)


class AuditSink(ABC):
    """Destination for audit entries."""

    @abstractmethod
    async def append(self, entry: AuditEntry) -> None:
        pass


class SqlNotificationSink(NotificationSink):
    """Writes notifications to the notifications table."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, draft: NotificationDraft) -> None:
        self._session.add(self._to_row(draft))
        await self._session.flush()

    async def create_many(self, drafts: list[NotificationDraft]) -> int:
        self._session.add_all([self._to_row(d) for d in drafts])
        await self._session.flush()
        return len(drafts)

    @staticmethod
    def _to_row(draft: NotificationDraft) -> Notification:
        return Notification(
            user_id=draft.user_id,
            type=draft.type,
            title=draft.title,
            message=draft.message,
            priority=draft.priority,
            read=False,
            feedback_id=draft.feedback_id,
            details=draft.details,
        )


class SqlAuditSink(AuditSink):
    """Appends to the audit_log table."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def append(self, entry: AuditEntry) -> None:
        self._session.add(
            AuditLog(
                user_id=entry.user_id,
                user_role=entry.user_role,
                action=entry.action,
                entity_type=entry.entity_type,
                entity_id=entry.entity_id,
                details=entry.details,
            )
        )
        await self._session.flush()


# =============================================================================
# DISPATCHER
# =============================================================================


class SideEffectDispatcher:
    """Runs the post-write hooks for lifecycle transitions."""

    def __init__(
        self,
        session: AsyncSession,
        notification_sink: NotificationSink | None = None,
        audit_sink: AuditSink | None = None,
    ):
        self._session = session
        self._notifications = notification_sink or SqlNotificationSink(session)
        self._audit = audit_sink or SqlAuditSink(session)

    async def dispatch(self, event: TransitionEvent) -> DispatchReport:
        """Run every hook for one transition. Never raises."""
        report = DispatchReport()
        hooks: list[tuple[str, Callable[[TransitionEvent, DispatchReport], Awaitable[None]]]] = [
            ("notify", self._notify_hook),
            ("audit", self._audit_hook),
        ]
        for name, hook in hooks:
            await self._run_isolated(
                name,
                lambda hook=hook: hook(event, report),
                report,
                context=f"{event.action.value} {event.ticket.ticket_id}",
            )
        return report

    async def notify_bulk_assignment(
        self,
        team_id,
        assigned_ticket_ids: list[str],
    ) -> DispatchReport:
        """One summary notification to the team lead after a bulk assignment."""
        report = DispatchReport()
        if not assigned_ticket_ids:
            return report

        async def send() -> None:
            lead_id = await self._team_lead_id(team_id)
            if not lead_id:
                logger.info(f"Team {team_id} has no lead; bulk summary skipped")
                return
            count = len(assigned_ticket_ids)
            await self._notifications.create(
                NotificationDraft(
                    user_id=lead_id,
                    type=NotificationType.FEEDBACK_ASSIGNED,
                    title="Bulk Feedback Assignment",
                    message=f"{count} feedback items have been assigned to your team",
                    priority=NotificationPriority.HIGH,
                    details={"ticket_ids": assigned_ticket_ids},
                )
            )
            report.notifications_sent += 1

        await self._run_isolated("bulk_notify", send, report, context=f"team {team_id}")
        return report

    async def record_audit(self, entry: AuditEntry) -> DispatchReport:
        """Append a single audit entry with the same isolation as the hooks."""
        report = DispatchReport()

        async def append() -> None:
            await self._audit.append(entry)
            report.audit_written = True

        await self._run_isolated("audit", append, report, context=entry.action.value)
        return report

    # =========================================================================
    # HOOKS
    # =========================================================================

    async def _notify_hook(self, event: TransitionEvent, report: DispatchReport) -> None:
        drafts = await self._build_notifications(event)
        if drafts:
            report.notifications_sent += await self._notifications.create_many(drafts)

    async def _audit_hook(self, event: TransitionEvent, report: DispatchReport) -> None:
        await self._audit.append(
            AuditEntry(
                user_id=event.actor.id,
                user_role=UserRole(event.actor.role).value,
                action=event.action,
                entity_type=ENTITY_FEEDBACK,
                entity_id=event.ticket.ticket_id,
                details=event.metadata,
            )
        )
        report.audit_written = True

    async def _run_isolated(
        self,
        name: str,
        fn: Callable[[], Awaitable[None]],
        report: DispatchReport,
        context: str,
    ) -> None:
        try:
            async with self._session.begin_nested():
                await fn()
        except Exception:
            logger.exception(f"Side effect '{name}' failed for {context}")
            report.failures.append(name)

    # =========================================================================
    # RECIPIENT RESOLUTION
    # =========================================================================

    async def _build_notifications(self, event: TransitionEvent) -> list[NotificationDraft]:
        ticket = event.ticket
        ticket_id = ticket.ticket_id
        action = event.action

        if action == AuditAction.FEEDBACK_SUBMITTED:
            auditor_ids = await self._user_ids_with_role(UserRole.AUDITOR)
            return [
                NotificationDraft(
                    user_id=auditor_id,
                    type=NotificationType.FEEDBACK_SUBMITTED,
                    title="New Feedback Submitted",
                    message=f"New feedback submitted by {event.actor.name} - Ticket ID: {ticket_id}",
                    priority=NotificationPriority.HIGH,
                    feedback_id=ticket_id,
                )
                for auditor_id in auditor_ids
            ]

        if action == AuditAction.FEEDBACK_ASSIGNED:
            lead_id = await self._team_lead_id(ticket.assigned_team_id)
            if not lead_id:
                return []
            return [
                NotificationDraft(
                    user_id=lead_id,
                    type=NotificationType.FEEDBACK_ASSIGNED,
                    title="New Feedback Assigned",
                    message=f"Feedback {ticket_id} has been assigned to your team",
                    priority=NotificationPriority.HIGH,
                    feedback_id=ticket_id,
                )
            ]

        if action == AuditAction.FEEDBACK_ASSIGNED_TO_MEMBER:
            return [
                NotificationDraft(
                    user_id=ticket.assigned_member_id,
                    type=NotificationType.FEEDBACK_ASSIGNED,
                    title="New Task Assigned",
                    message=f"Feedback {ticket_id} has been assigned to you",
                    priority=NotificationPriority.HIGH,
                    feedback_id=ticket_id,
                )
            ]

        if action == AuditAction.FEEDBACK_STATUS_UPDATED:
            if ticket.status not in RESOLUTION_STATUSES:
                return []
            lead_id = await self._team_lead_id(ticket.assigned_team_id)
            if not lead_id:
                return []
            return [
                NotificationDraft(
                    user_id=lead_id,
                    type=NotificationType.RESOLUTION_SUBMITTED,
                    title="Resolution Submitted",
                    message=f"{event.actor.name} has submitted a resolution for {ticket_id}",
                    feedback_id=ticket_id,
                )
            ]

        if action in (AuditAction.RESOLUTION_APPROVED, AuditAction.RESOLUTION_REJECTED):
            # After a reassigning rejection this is the new member
            if not ticket.assigned_member_id:
                return []
            approved = action == AuditAction.RESOLUTION_APPROVED
            return [
                NotificationDraft(
                    user_id=ticket.assigned_member_id,
                    type=(
                        NotificationType.RESOLUTION_APPROVED
                        if approved
                        else NotificationType.RESOLUTION_REJECTED
                    ),
                    title="Resolution Approved" if approved else "Resolution Rejected",
                    message=(
                        f"Your resolution for {ticket_id} has been approved"
                        if approved
                        else f"The resolution for {ticket_id} has been rejected. "
                        "Please review and resubmit."
                    ),
                    priority=NotificationPriority.MEDIUM if approved else NotificationPriority.HIGH,
                    feedback_id=ticket_id,
                )
            ]

        # Bulk items (summarised separately) and suggestion requests notify nobody
        return []

    async def _user_ids_with_role(self, role: UserRole) -> list[str]:
        result = await self._session.execute(
            select(User.id).where(User.role == role).order_by(User.id)
        )
        return list(result.scalars().all())

    async def _team_lead_id(self, team_id) -> str | None:
        if team_id is None:
            return None
        result = await self._session.execute(
            select(Team.lead_id).where(Team.id == team_id)
        )
        return result.scalar_one_or_none()

"""
Lifecycle Engine: state transitions, assignment and SLA for feedback tickets.

Every operation follows the same shape:
- Check the actor's role against the permission table
- Load the ticket
- Ask the state machine for the next status
- Write with a conditional UPDATE matched on the expected current status
- Hand the result to the side-effect dispatcher

A failure at any step before the write leaves the ticket untouched and produces
no notification or audit entry.
"""

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import false, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings, get_settings
from ..models import (
    ApprovalStatus,
    AuditAction,
    Feedback,
    Pod,
    Team,
    TicketPriority,
    TicketStatus,
    User,
    UserRole,
)
from .dispatcher import SideEffectDispatcher, TransitionEvent
from .errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    TicketNotFoundError,
    ValidationError,
)
from .forms import FormService, validate_form_data
from .sla import CLOSED_STATUSES, compute_sla_deadline, validate_sla_hours
from .state_machine import (
    RESOLUTION_STATUSES,
    Operation,
    require_permission,
    transition,
)
from .suggestions import build_suggestions
from .ticket_ids import generate_ticket_id

logger = logging.getLogger(__name__)

RESOLVER_ROLES = frozenset({UserRole.TEAM_MEMBER, UserRole.TEAM_LEAD})


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class SubmitTicketInput:
    """Input for a student submission."""
    form_data: dict[str, Any]
    program: str | None = None  # Defaults to the student's program


@dataclass
class AssignToTeamInput:
    """Input for triaging tickets to a team."""
    team_id: UUID
    pod_id: UUID | None = None
    priority: TicketPriority = TicketPriority.MEDIUM
    kpi_category: str | None = None
    sla_hours: int | None = None  # Defaults to settings.default_sla_hours


@dataclass
class AssignToMemberInput:
    """Input for delegating a ticket to a team member."""
    member_id: str
    target_resolution_date: datetime | None = None


@dataclass
class UpdateStatusInput:
    """Input for a resolver moving a ticket forward."""
    status: TicketStatus
    resolution_text: str | None = None
    preventive_measures: str | None = None
    member_comments: str | None = None
    days_taken: int | None = None


@dataclass
class ApproveResolutionInput:
    """Input for a lead's verdict on a submitted resolution."""
    approved: bool
    lead_comments: str | None = None
    reassign_to: str | None = None  # Only honoured on rejection


@dataclass
class BulkAssignItem:
    """Outcome for one ticket of a bulk assignment."""
    ticket_id: str
    success: bool
    error: str | None = None


@dataclass
class BulkAssignResult:
    """Aggregate outcome of a bulk assignment, results in input order."""
    assigned: int
    failed: int
    results: list[BulkAssignItem] = field(default_factory=list)


@dataclass
class TicketPage:
    """One page of a ticket listing."""
    items: list[Feedback]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


# =============================================================================
# LIFECYCLE ENGINE
# =============================================================================


class LifecycleEngine:
    """
    Owns the feedback ticket state machine.

    Guarantees:
    1. Only the roles in the permission table can move a ticket
    2. A ticket only moves along the edges of the state machine
    3. The SLA deadline is written once, at triage, and never again
    4. A concurrent change to the same ticket is detected, not overwritten
    5. Each successful transition gets exactly one audit attempt
    """

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: SideEffectDispatcher | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._session = session
        self._dispatcher = dispatcher or SideEffectDispatcher(session)
        self._settings = settings or get_settings()
        self._now = clock or _utcnow

    # =========================================================================
    # SUBMIT
    # =========================================================================

    async def submit_ticket(self, actor: User, input: SubmitTicketInput) -> Feedback:
        """
        Create a new ticket for a student.

        Flow:
        1. Permission check (students only)
        2. Validate form data against the program's active template
        3. Insert with a fresh ticket id, retrying on id collision
        4. Notify auditors and log audit event
        """
        # Step 1: Permission
        transition(None, Operation.SUBMIT, actor.role)

        # Step 2: Form validation
        program = input.program or actor.program
        if not program:
            raise ValidationError(
                "Program is required to submit feedback",
                fields={"program": "required"},
            )
        template = await FormService(self._session).get_active_template(program)
        form_data = validate_form_data(template.fields, input.form_data or {})

        # Step 3: Insert
        ticket = await self._insert_ticket(actor, program, form_data)

        logger.info(f"Feedback {ticket.ticket_id} submitted by {actor.id}")

        # Step 4: Side effects
        await self._dispatcher.dispatch(
            TransitionEvent(
                action=AuditAction.FEEDBACK_SUBMITTED,
                actor=actor,
                ticket=ticket,
                metadata={
                    "program": program,
                    "course": form_data.get("course"),
                    "unit": form_data.get("unit"),
                },
            )
        )
        return ticket

    async def _insert_ticket(
        self,
        actor: User,
        program: str,
        form_data: dict[str, Any],
    ) -> Feedback:
        max_attempts = self._settings.ticket_id_max_attempts
        for attempt in range(1, max_attempts + 1):
            now = self._now()
            ticket = Feedback(
                ticket_id=generate_ticket_id(now),
                student_id=actor.id,
                program=program,
                form_data=form_data,
                status=TicketStatus.SUBMITTED,
                priority=TicketPriority.MEDIUM,
                submitted_at=now,
            )
            try:
                async with self._session.begin_nested():
                    self._session.add(ticket)
                    await self._session.flush()
            except IntegrityError:
                logger.warning(
                    f"Ticket id {ticket.ticket_id} collided "
                    f"(attempt {attempt}/{max_attempts})"
                )
                continue
            await self._session.refresh(ticket)
            return ticket

        raise ConflictError(
            f"Could not allocate a unique ticket id after {max_attempts} attempts"
        )

    # =========================================================================
    # ASSIGN TO TEAM (TRIAGE)
    # =========================================================================

    async def assign_to_team(
        self,
        actor: User,
        ticket_id: str,
        input: AssignToTeamInput,
    ) -> Feedback:
        """
        Triage a submitted ticket to a team and start its SLA clock.

        Flow:
        1. Permission check
        2. Validate SLA window and team/pod
        3. Load ticket and check it is still submitted
        4. Conditional update: team, priority, SLA deadline
        5. Notify team lead and log audit event
        """
        require_permission(Operation.ASSIGN_TO_TEAM, actor.role)
        sla_hours = self._resolve_sla_hours(input.sla_hours)
        await self._get_team_or_raise(input.team_id, input.pod_id)

        ticket = await self._assign_one(actor, ticket_id, input, sla_hours)

        await self._dispatcher.dispatch(
            TransitionEvent(
                action=AuditAction.FEEDBACK_ASSIGNED,
                actor=actor,
                ticket=ticket,
                metadata=self._assignment_metadata(input, sla_hours),
            )
        )
        return ticket

    async def bulk_assign_to_team(
        self,
        actor: User,
        ticket_ids: list[str],
        input: AssignToTeamInput,
    ) -> BulkAssignResult:
        """
        Triage several tickets to one team, best effort.

        Each ticket is processed on its own SAVEPOINT: an unknown ticket, a
        ticket that is no longer submitted, or a lost race fails only that
        item. The team lead receives one summary notification.
        """
        require_permission(Operation.ASSIGN_TO_TEAM, actor.role)
        if not ticket_ids:
            raise ValidationError(
                "At least one ticket id is required",
                fields={"ticket_ids": "must not be empty"},
            )
        max_tickets = self._settings.bulk_assign_max_tickets
        if len(ticket_ids) > max_tickets:
            raise ValidationError(
                f"Bulk assignment is limited to {max_tickets} tickets",
                fields={"ticket_ids": f"at most {max_tickets} items"},
            )
        sla_hours = self._resolve_sla_hours(input.sla_hours)
        await self._get_team_or_raise(input.team_id, input.pod_id)

        results: list[BulkAssignItem] = []
        assigned_ids: list[str] = []
        metadata = {**self._assignment_metadata(input, sla_hours), "bulkOperation": True}

        for ticket_id in ticket_ids:
            try:
                async with self._session.begin_nested():
                    ticket = await self._assign_one(actor, ticket_id, input, sla_hours)
            except (NotFoundError, InvalidTransitionError, ConflictError) as e:
                logger.warning(f"Bulk assign skipped {ticket_id}: {e}")
                results.append(BulkAssignItem(ticket_id=ticket_id, success=False, error=str(e)))
                continue

            results.append(BulkAssignItem(ticket_id=ticket_id, success=True))
            assigned_ids.append(ticket_id)
            await self._dispatcher.dispatch(
                TransitionEvent(
                    action=AuditAction.FEEDBACK_BULK_ASSIGNED,
                    actor=actor,
                    ticket=ticket,
                    metadata=metadata,
                )
            )

        await self._dispatcher.notify_bulk_assignment(input.team_id, assigned_ids)

        logger.info(
            f"Bulk assignment to team {input.team_id} by {actor.id}: "
            f"{len(assigned_ids)} assigned, {len(ticket_ids) - len(assigned_ids)} failed"
        )
        return BulkAssignResult(
            assigned=len(assigned_ids),
            failed=len(ticket_ids) - len(assigned_ids),
            results=results,
        )

    async def _assign_one(
        self,
        actor: User,
        ticket_id: str,
        input: AssignToTeamInput,
        sla_hours: int,
    ) -> Feedback:
        ticket = await self._get_ticket_or_raise(ticket_id)
        new_status = transition(ticket.status, Operation.ASSIGN_TO_TEAM, actor.role)

        assigned_at = self._now()
        await self._conditional_update(
            ticket,
            status=new_status,
            assigned_team_id=input.team_id,
            assigned_pod_id=input.pod_id,
            priority=TicketPriority(input.priority),
            kpi_category=input.kpi_category,
            sla_hours=sla_hours,
            auditor_id=actor.id,
            assigned_at=assigned_at,
            sla_deadline=compute_sla_deadline(assigned_at, sla_hours),
        )
        logger.info(f"Feedback {ticket_id} assigned to team {input.team_id} by {actor.id}")
        return ticket

    def _resolve_sla_hours(self, sla_hours: int | None) -> int:
        if sla_hours is None:
            sla_hours = self._settings.default_sla_hours
        return validate_sla_hours(sla_hours, self._settings.max_sla_hours)

    @staticmethod
    def _assignment_metadata(input: AssignToTeamInput, sla_hours: int) -> dict:
        return {
            "teamId": str(input.team_id),
            "podId": str(input.pod_id) if input.pod_id else None,
            "priority": TicketPriority(input.priority).value,
            "kpiCategory": input.kpi_category,
            "slaHours": sla_hours,
        }

    # =========================================================================
    # ASSIGN TO MEMBER
    # =========================================================================

    async def assign_to_member(
        self,
        actor: User,
        ticket_id: str,
        input: AssignToMemberInput,
    ) -> Feedback:
        """
        Delegate a triaged ticket to a team member.

        The SLA deadline is left alone: delegation never restarts the clock.
        """
        require_permission(Operation.ASSIGN_TO_MEMBER, actor.role)
        ticket = await self._get_ticket_or_raise(ticket_id)
        new_status = transition(ticket.status, Operation.ASSIGN_TO_MEMBER, actor.role)
        await self._get_resolver_or_raise(input.member_id, ticket, "member_id")

        previous_member_id = ticket.assigned_member_id
        await self._conditional_update(
            ticket,
            status=new_status,
            assigned_member_id=input.member_id,
            target_resolution_date=input.target_resolution_date,
        )
        logger.info(f"Feedback {ticket_id} assigned to member {input.member_id} by {actor.id}")

        await self._dispatcher.dispatch(
            TransitionEvent(
                action=AuditAction.FEEDBACK_ASSIGNED_TO_MEMBER,
                actor=actor,
                ticket=ticket,
                metadata={
                    "memberId": input.member_id,
                    "previousMemberId": previous_member_id,
                    "targetResolutionDate": (
                        input.target_resolution_date.isoformat()
                        if input.target_resolution_date
                        else None
                    ),
                },
            )
        )
        return ticket

    # =========================================================================
    # UPDATE STATUS
    # =========================================================================

    async def update_status(
        self,
        actor: User,
        ticket_id: str,
        input: UpdateStatusInput,
    ) -> Feedback:
        """
        Move a ticket to in_progress, or submit a resolution.

        Submitting a resolution (resolved / no_issue_found) requires
        resolution text and puts the ticket in front of the lead for approval.
        """
        require_permission(Operation.UPDATE_STATUS, actor.role)
        ticket = await self._get_ticket_or_raise(ticket_id)
        old_status = ticket.status
        new_status = transition(
            old_status, Operation.UPDATE_STATUS, actor.role, target=input.status
        )

        values: dict[str, Any] = {"status": new_status}
        if input.member_comments is not None:
            values["member_comments"] = input.member_comments

        if new_status in RESOLUTION_STATUSES:
            if _is_blank(input.resolution_text):
                raise ValidationError(
                    "Resolution text is required to resolve a ticket",
                    fields={"resolution_text": "required"},
                )
            if input.days_taken is not None and input.days_taken < 0:
                raise ValidationError(
                    "days_taken cannot be negative",
                    fields={"days_taken": "must be >= 0"},
                )
            values.update(
                resolution_text=input.resolution_text,
                preventive_measures=input.preventive_measures,
                days_taken=input.days_taken,
                actual_resolution_date=self._now(),
                lead_approval_status=ApprovalStatus.PENDING,
            )

        await self._conditional_update(ticket, **values)
        logger.info(
            f"Feedback {ticket_id} moved {old_status.value} -> {new_status.value} by {actor.id}"
        )

        await self._dispatcher.dispatch(
            TransitionEvent(
                action=AuditAction.FEEDBACK_STATUS_UPDATED,
                actor=actor,
                ticket=ticket,
                metadata={
                    "oldStatus": old_status.value,
                    "newStatus": new_status.value,
                    "resolutionText": bool(input.resolution_text),
                    "daysTaken": input.days_taken,
                },
            )
        )
        return ticket

    # =========================================================================
    # APPROVE / REJECT RESOLUTION
    # =========================================================================

    async def approve_resolution(
        self,
        actor: User,
        ticket_id: str,
        input: ApproveResolutionInput,
    ) -> Feedback:
        """
        Record the lead's verdict on a submitted resolution.

        Approval completes the ticket. Rejection sends it back to pending,
        optionally to a different member. Either way the lead can act only once
        per submitted resolution.
        """
        operation = (
            Operation.APPROVE_RESOLUTION if input.approved else Operation.REJECT_RESOLUTION
        )
        require_permission(operation, actor.role)
        ticket = await self._get_ticket_or_raise(ticket_id)
        new_status = transition(
            ticket.status,
            operation,
            actor.role,
            approval_status=ticket.lead_approval_status,
        )

        previous_member_id = ticket.assigned_member_id
        values: dict[str, Any] = {
            "status": new_status,
            "lead_comments": input.lead_comments,
        }
        if input.approved:
            values["lead_approval_status"] = ApprovalStatus.APPROVED
            values["completed_at"] = self._now()
        else:
            values["lead_approval_status"] = ApprovalStatus.REJECTED
            if input.reassign_to:
                await self._get_resolver_or_raise(input.reassign_to, ticket, "reassign_to")
                values["assigned_member_id"] = input.reassign_to

        await self._conditional_update(ticket, expect_pending_approval=True, **values)
        logger.info(
            f"Resolution for {ticket_id} "
            f"{'approved' if input.approved else 'rejected'} by {actor.id}"
        )

        await self._dispatcher.dispatch(
            TransitionEvent(
                action=(
                    AuditAction.RESOLUTION_APPROVED
                    if input.approved
                    else AuditAction.RESOLUTION_REJECTED
                ),
                actor=actor,
                ticket=ticket,
                metadata={
                    "approved": input.approved,
                    "leadComments": input.lead_comments,
                    "previousMemberId": previous_member_id,
                    "reassignedTo": None if input.approved else input.reassign_to,
                },
            )
        )
        return ticket

    # =========================================================================
    # SUGGESTIONS
    # =========================================================================

    async def generate_suggestions(
        self,
        actor: User,
        ticket_id: str,
        issue_description: str | None = None,
    ) -> dict[str, str]:
        """Attach canned solution and prevention text to a ticket. No status change."""
        require_permission(Operation.REQUEST_SUGGESTIONS, actor.role)
        ticket = await self._get_ticket_or_raise(ticket_id)

        form_data = ticket.form_data or {}
        description = issue_description or form_data.get("issue_description")
        if _is_blank(description):
            raise ValidationError(
                "An issue description is required",
                fields={"issue_description": "required"},
            )

        suggestions = build_suggestions(form_data)
        await self._conditional_update(ticket, ai_suggestions=suggestions)

        await self._dispatcher.dispatch(
            TransitionEvent(
                action=AuditAction.AI_SUGGESTIONS_REQUESTED,
                actor=actor,
                ticket=ticket,
                metadata={"issueDescription": description[:100] + "..."},
            )
        )
        return suggestions

    # =========================================================================
    # READS
    # =========================================================================

    async def get_ticket(self, actor: User, ticket_id: str) -> Feedback:
        """Fetch one ticket; students only see their own."""
        ticket = await self._get_ticket_or_raise(ticket_id)
        if UserRole(actor.role) == UserRole.STUDENT and ticket.student_id != actor.id:
            raise TicketNotFoundError(ticket_id)
        return ticket

    async def list_tickets(
        self,
        actor: User,
        status: TicketStatus | None = None,
        overdue: bool | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> TicketPage:
        """
        List the tickets visible to the actor, newest first.

        Scope by role:
        - student: tickets they submitted
        - team_lead: tickets assigned to their team
        - team_member: tickets assigned to them
        - auditor, admin, co_admin: everything
        """
        query = select(Feedback)
        role = UserRole(actor.role)

        if role == UserRole.STUDENT:
            query = query.where(Feedback.student_id == actor.id)
        elif role == UserRole.TEAM_LEAD:
            # "== None" compiles to IS NULL, which matches every untriaged ticket
            if actor.team_id is None:
                query = query.where(false())
            else:
                query = query.where(Feedback.assigned_team_id == actor.team_id)
        elif role == UserRole.TEAM_MEMBER:
            query = query.where(Feedback.assigned_member_id == actor.id)

        if status is not None:
            query = query.where(Feedback.status == status)

        if overdue is not None:
            open_and_late = (
                Feedback.sla_deadline.is_not(None)
                & (Feedback.sla_deadline < self._now())
                & Feedback.status.not_in(list(CLOSED_STATUSES))
            )
            if overdue:
                query = query.where(open_and_late)
            else:
                query = query.where(
                    or_(
                        Feedback.sla_deadline.is_(None),
                        Feedback.sla_deadline >= self._now(),
                        Feedback.status.in_(list(CLOSED_STATUSES)),
                    )
                )

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self._session.execute(count_query)).scalar() or 0

        query = (
            query.order_by(Feedback.submitted_at.desc(), Feedback.ticket_id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self._session.execute(query)

        return TicketPage(
            items=list(result.scalars().all()),
            total=total,
            page=page,
            page_size=page_size,
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _get_ticket_or_raise(self, ticket_id: str) -> Feedback:
        result = await self._session.execute(
            select(Feedback).where(Feedback.ticket_id == ticket_id)
        )
        ticket = result.scalar_one_or_none()
        if not ticket:
            raise TicketNotFoundError(ticket_id)
        return ticket

    async def _get_team_or_raise(self, team_id: UUID, pod_id: UUID | None) -> Team:
        team = await self._session.get(Team, team_id)
        if not team:
            raise NotFoundError(f"Team {team_id} not found")
        if pod_id is not None:
            pod = await self._session.get(Pod, pod_id)
            if not pod or pod.team_id != team.id:
                raise NotFoundError(f"Pod {pod_id} not found in team {team.name}")
        return team

    async def _get_user_or_raise(self, user_id: str) -> User:
        user = await self._session.get(User, user_id)
        if not user:
            raise NotFoundError(f"User {user_id} not found")
        return user

    async def _get_resolver_or_raise(
        self,
        user_id: str,
        ticket: Feedback,
        field_name: str,
    ) -> User:
        """The user who will hold the ticket: a member or lead of its assigned team."""
        user = await self._get_user_or_raise(user_id)
        if UserRole(user.role) not in RESOLVER_ROLES:
            raise ValidationError(
                f"User {user_id} cannot be assigned feedback",
                fields={field_name: "must be a team member or team lead"},
            )
        if user.team_id != ticket.assigned_team_id:
            raise ValidationError(
                f"User {user_id} is not on the team handling {ticket.ticket_id}",
                fields={field_name: "must belong to the assigned team"},
            )
        return user

    async def _conditional_update(
        self,
        ticket: Feedback,
        expect_pending_approval: bool = False,
        **values: Any,
    ) -> None:
        """
        UPDATE the ticket only if it is still in the status we read.

        Raises:
            ConflictError: another request moved the ticket first
        """
        stmt = update(Feedback).where(
            Feedback.id == ticket.id,
            Feedback.status == ticket.status,
        )
        if expect_pending_approval:
            stmt = stmt.where(Feedback.lead_approval_status == ApprovalStatus.PENDING)

        result = await self._session.execute(
            stmt.values(**values).execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                f"Concurrent modification of {ticket.ticket_id} "
                f"(expected status {ticket.status.value})"
            )
            raise ConflictError(
                f"Feedback {ticket.ticket_id} was modified by another request"
            )
        await self._session.refresh(ticket)

"""
Ticket state machine and permission table.

Pure functions only: nothing here touches the database, so every rule can be
exercised in isolation.

    submitted -> assigned -> pending -> in_progress -> resolved | no_issue_found
                                ^                              |
                                +------- lead rejection -------+
                                                               |
                                                 lead approval v
                                                           completed
"""

from enum import Enum

from ..models import ApprovalStatus, TicketStatus, UserRole
from .errors import ForbiddenError, InvalidTransitionError, ValidationError


class Operation(str, Enum):
    SUBMIT = "submit"
    ASSIGN_TO_TEAM = "assign_to_team"
    ASSIGN_TO_MEMBER = "assign_to_member"
    UPDATE_STATUS = "update_status"
    APPROVE_RESOLUTION = "approve_resolution"
    REJECT_RESOLUTION = "reject_resolution"
    REQUEST_SUGGESTIONS = "request_suggestions"
    BROADCAST = "broadcast"
    READ_AUDIT_LOG = "read_audit_log"


_ADMINS = frozenset({UserRole.ADMIN, UserRole.CO_ADMIN})
_RESOLVERS = frozenset({UserRole.TEAM_MEMBER, UserRole.TEAM_LEAD}) | _ADMINS
_LEADS = frozenset({UserRole.TEAM_LEAD}) | _ADMINS

PERMISSIONS: dict[Operation, frozenset[UserRole]] = {
    Operation.SUBMIT: frozenset({UserRole.STUDENT}),
    Operation.ASSIGN_TO_TEAM: frozenset({UserRole.AUDITOR}) | _ADMINS,
    Operation.ASSIGN_TO_MEMBER: _LEADS,
    Operation.UPDATE_STATUS: _RESOLVERS,
    Operation.APPROVE_RESOLUTION: _LEADS,
    Operation.REJECT_RESOLUTION: _LEADS,
    Operation.REQUEST_SUGGESTIONS: _RESOLVERS,
    Operation.BROADCAST: _ADMINS,
    Operation.READ_AUDIT_LOG: _ADMINS,
}

RESOLUTION_STATUSES = frozenset({TicketStatus.RESOLVED, TicketStatus.NO_ISSUE_FOUND})

# Targets a resolver may move a ticket to with update_status
MEMBER_TARGETS = frozenset({TicketStatus.IN_PROGRESS}) | RESOLUTION_STATUSES

# Source statuses accepted by each ticket-moving operation
SOURCE_STATUSES: dict[Operation, frozenset[TicketStatus]] = {
    Operation.ASSIGN_TO_TEAM: frozenset({TicketStatus.SUBMITTED}),
    Operation.ASSIGN_TO_MEMBER: frozenset({
        TicketStatus.ASSIGNED,
        TicketStatus.PENDING,
        TicketStatus.IN_PROGRESS,
    }),
    Operation.UPDATE_STATUS: frozenset({TicketStatus.PENDING, TicketStatus.IN_PROGRESS}),
    Operation.APPROVE_RESOLUTION: RESOLUTION_STATUSES,
    Operation.REJECT_RESOLUTION: RESOLUTION_STATUSES,
}


def is_permitted(operation: Operation, role: UserRole | str) -> bool:
    """Check the permission table without raising."""
    return UserRole(role) in PERMISSIONS[operation]


def require_permission(operation: Operation, role: UserRole | str) -> None:
    """Raise ForbiddenError unless role may perform operation."""
    if not is_permitted(operation, role):
        raise ForbiddenError(
            f"Role '{UserRole(role).value}' may not perform {operation.value}"
        )


def transition(
    state: TicketStatus | None,
    operation: Operation,
    role: UserRole | str,
    *,
    target: TicketStatus | None = None,
    approval_status: ApprovalStatus | None = None,
) -> TicketStatus:
    """
    Compute the status a ticket moves to.

    Args:
        state: Current status (None for a ticket that does not exist yet)
        operation: The lifecycle operation being attempted
        role: The actor's role
        target: Requested status for UPDATE_STATUS
        approval_status: Current lead approval status, for approve/reject

    Returns:
        The new status.

    Raises:
        ForbiddenError: role is not in the operation's permission set
        ValidationError: UPDATE_STATUS target is not a member-settable status
        InvalidTransitionError: current state does not satisfy the precondition
    """
    require_permission(operation, role)

    if operation == Operation.SUBMIT:
        if state is not None:
            raise InvalidTransitionError("Ticket has already been submitted")
        return TicketStatus.SUBMITTED

    if operation not in SOURCE_STATUSES:
        raise InvalidTransitionError(f"{operation.value} does not move a ticket")

    if operation == Operation.UPDATE_STATUS:
        if target is None or target not in MEMBER_TARGETS:
            allowed = ", ".join(sorted(s.value for s in MEMBER_TARGETS))
            raise ValidationError(
                f"Status must be one of: {allowed}",
                fields={"status": "invalid target status"},
            )

    if state not in SOURCE_STATUSES[operation]:
        current = state.value if state else "none"
        raise InvalidTransitionError(
            f"Cannot {operation.value.replace('_', ' ')} a ticket in status '{current}'"
        )

    if operation == Operation.ASSIGN_TO_TEAM:
        return TicketStatus.ASSIGNED

    if operation == Operation.ASSIGN_TO_MEMBER:
        return TicketStatus.PENDING

    if operation == Operation.UPDATE_STATUS:
        return target

    # Approve / reject: the lead acts once per submitted resolution
    if approval_status != ApprovalStatus.PENDING:
        raise InvalidTransitionError(
            "Resolution is not awaiting lead approval"
        )
    if operation == Operation.APPROVE_RESOLUTION:
        return TicketStatus.COMPLETED
    return TicketStatus.PENDING

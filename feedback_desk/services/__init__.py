"""Business logic services for Feedback Desk."""

from .audit import AuditService
from .dispatcher import (
    AuditEntry,
    AuditSink,
    DispatchReport,
    NotificationDraft,
    NotificationSink,
    SideEffectDispatcher,
    SqlAuditSink,
    SqlNotificationSink,
    TransitionEvent,
)
from .errors import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    LifecycleError,
    NotFoundError,
    TicketNotFoundError,
    UnauthorizedError,
    ValidationError,
)
from .forms import FormService, validate_form_data
from .lifecycle_engine import (
    ApproveResolutionInput,
    AssignToMemberInput,
    AssignToTeamInput,
    BulkAssignItem,
    BulkAssignResult,
    LifecycleEngine,
    SubmitTicketInput,
    TicketPage,
    UpdateStatusInput,
)
from .notifications import BroadcastInput, NotificationPage, NotificationService
from .sla import hours_remaining, is_overdue

__all__ = [
    # Lifecycle Engine (primary)
    "LifecycleEngine",
    "SubmitTicketInput",
    "AssignToTeamInput",
    "AssignToMemberInput",
    "UpdateStatusInput",
    "ApproveResolutionInput",
    "BulkAssignItem",
    "BulkAssignResult",
    "TicketPage",
    # Errors
    "LifecycleError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "TicketNotFoundError",
    "ValidationError",
    "InvalidTransitionError",
    "ConflictError",
    # Side effects
    "SideEffectDispatcher",
    "TransitionEvent",
    "DispatchReport",
    "NotificationDraft",
    "AuditEntry",
    "NotificationSink",
    "AuditSink",
    "SqlNotificationSink",
    "SqlAuditSink",
    # Supporting services
    "AuditService",
    "FormService",
    "validate_form_data",
    "NotificationService",
    "NotificationPage",
    "BroadcastInput",
    "is_overdue",
    "hours_remaining",
]

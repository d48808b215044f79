"""Pydantic schemas for feedback tickets and form templates."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from ..models import (
    ApprovalStatus,
    Feedback,
    TicketPriority,
    TicketStatus,
)
from ..services import sla
from .base import FeedbackBaseModel, PaginatedResponse, TimestampMixin


# =============================================================================
# TICKET RESPONSES
# =============================================================================


class FeedbackResponse(FeedbackBaseModel, TimestampMixin):
    """Full ticket, with read-time SLA fields."""

    id: UUID
    ticket_id: str
    student_id: str
    program: str | None = None
    form_data: dict[str, Any] = Field(default_factory=dict)

    status: TicketStatus
    priority: TicketPriority
    kpi_category: str | None = None
    sla_hours: int | None = None
    assigned_team_id: UUID | None = None
    assigned_pod_id: UUID | None = None
    assigned_member_id: str | None = None
    auditor_id: str | None = None
    target_resolution_date: datetime | None = None

    resolution_text: str | None = None
    preventive_measures: str | None = None
    member_comments: str | None = None
    days_taken: int | None = None
    actual_resolution_date: datetime | None = None

    lead_approval_status: ApprovalStatus | None = None
    lead_comments: str | None = None
    ai_suggestions: dict[str, str] | None = None

    submitted_at: datetime
    assigned_at: datetime | None = None
    sla_deadline: datetime | None = None
    completed_at: datetime | None = None

    # Computed, never stored
    is_overdue: bool = False
    hours_remaining: float | None = None

    @classmethod
    def from_ticket(cls, ticket: Feedback, now: datetime | None = None) -> "FeedbackResponse":
        response = cls.model_validate(ticket)
        response.is_overdue = sla.is_overdue(ticket, now)
        response.hours_remaining = sla.hours_remaining(ticket, now)
        return response


class FeedbackListResponse(PaginatedResponse):
    """Paginated ticket listing."""

    items: list[FeedbackResponse]


class FeedbackCreatedResponse(FeedbackBaseModel):
    """Returned to the student after a submission."""

    ticket_id: str
    feedback: FeedbackResponse


# =============================================================================
# OPERATION REQUESTS
# =============================================================================


class FeedbackCreate(FeedbackBaseModel):
    """Student submission."""

    program: str | None = Field(
        default=None,
        max_length=50,
        description="Defaults to the student's program",
    )
    form_data: dict[str, Any] = Field(default_factory=dict)


class AssignToTeamRequest(FeedbackBaseModel):
    """Triage a single ticket."""

    ticket_id: str
    team_id: UUID
    pod_id: UUID | None = None
    priority: TicketPriority = TicketPriority.MEDIUM
    kpi_category: str | None = Field(default=None, max_length=100)
    sla_hours: int | None = Field(
        default=None,
        description="Hours until the SLA deadline; server default when omitted",
    )


class BulkAssignRequest(FeedbackBaseModel):
    """Triage several tickets to the same team."""

    ticket_ids: list[str]
    team_id: UUID
    pod_id: UUID | None = None
    priority: TicketPriority = TicketPriority.MEDIUM
    kpi_category: str | None = Field(default=None, max_length=100)
    sla_hours: int | None = None


class BulkAssignItemResponse(FeedbackBaseModel):
    ticket_id: str
    success: bool
    error: str | None = None


class BulkAssignResponse(FeedbackBaseModel):
    assigned: int
    failed: int
    results: list[BulkAssignItemResponse]


class AssignToMemberRequest(FeedbackBaseModel):
    ticket_id: str
    member_id: str
    target_resolution_date: datetime | None = None


class UpdateStatusRequest(FeedbackBaseModel):
    """Resolver progress or resolution submission."""

    ticket_id: str
    status: TicketStatus
    resolution_text: str | None = None
    preventive_measures: str | None = None
    member_comments: str | None = None
    days_taken: int | None = None


class ApproveResolutionRequest(FeedbackBaseModel):
    """Lead verdict. reassign_to is ignored when approved."""

    ticket_id: str
    approved: bool
    lead_comments: str | None = None
    reassign_to: str | None = None


class SuggestionsRequest(FeedbackBaseModel):
    ticket_id: str
    issue_description: str | None = Field(
        default=None,
        description="Defaults to the ticket's issue_description form field",
    )


class SuggestionsResponse(FeedbackBaseModel):
    proposed_solution: str
    preventive_measures: str


# =============================================================================
# FORM TEMPLATES
# =============================================================================


class FormFieldValidation(FeedbackBaseModel):
    min: float | None = None
    max: float | None = None
    pattern: str | None = None


class FormField(FeedbackBaseModel):
    """One field of a program's feedback form."""

    name: str
    label: str
    type: str = "text"
    required: bool = False
    options: list[str] | None = None
    validation: FormFieldValidation | None = None
    order: int = 0


class FormTemplateResponse(FeedbackBaseModel, TimestampMixin):
    id: UUID
    program_type: str
    name: str
    description: str | None = None
    fields: list[FormField]
    is_active: bool
    version: int

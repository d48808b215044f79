"""
Feedback API Routes: ticket submission, reads and lifecycle transitions.

Each endpoint is a thin wrapper around one LifecycleEngine operation:
1. POST /feedback - Student submission
2. POST /feedback/assign, /feedback/bulk-assign - Auditor triage
3. POST /feedback/assign-member - Lead delegation
4. POST /feedback/update-status - Resolver progress / resolution
5. POST /feedback/approve-resolution - Lead verdict
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from ..core import CurrentUserDep, SessionDep
from ..models import TicketStatus
from ..schemas import (
    ApproveResolutionRequest,
    AssignToMemberRequest,
    AssignToTeamRequest,
    BulkAssignItemResponse,
    BulkAssignRequest,
    BulkAssignResponse,
    FeedbackCreate,
    FeedbackCreatedResponse,
    FeedbackListResponse,
    FeedbackResponse,
    SuggestionsRequest,
    SuggestionsResponse,
    UpdateStatusRequest,
)
from ..services import (
    ApproveResolutionInput,
    AssignToMemberInput,
    AssignToTeamInput,
    LifecycleEngine,
    LifecycleError,
    SubmitTicketInput,
    UpdateStatusInput,
)
from .errors import to_http_exception

router = APIRouter(prefix="/feedback", tags=["feedback"])


# =============================================================================
# DEPENDENCIES
# =============================================================================


def get_lifecycle_engine(session: SessionDep) -> LifecycleEngine:
    return LifecycleEngine(session)


LifecycleEngineDep = Annotated[LifecycleEngine, Depends(get_lifecycle_engine)]


# =============================================================================
# SUBMIT & READ
# =============================================================================


@router.post(
    "",
    response_model=FeedbackCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit feedback",
)
async def submit_feedback(
    request: FeedbackCreate,
    current_user: CurrentUserDep,
    engine: LifecycleEngineDep,
):
    """Create a ticket from a student's form submission."""
    try:
        ticket = await engine.submit_ticket(
            current_user,
            SubmitTicketInput(form_data=request.form_data, program=request.program),
        )
    except LifecycleError as e:
        raise to_http_exception(e) from e

    return FeedbackCreatedResponse(
        ticket_id=ticket.ticket_id,
        feedback=FeedbackResponse.from_ticket(ticket),
    )


@router.get(
    "",
    response_model=FeedbackListResponse,
    summary="List visible tickets",
    description="""
    Tickets visible to the caller: students see their own, team leads their
    team's, team members those assigned to them, everyone else all tickets.
    """,
)
async def list_feedback(
    current_user: CurrentUserDep,
    engine: LifecycleEngineDep,
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Items per page"),
    status: TicketStatus | None = Query(default=None, description="Filter by status"),
    overdue: bool | None = Query(default=None, description="Filter by SLA breach"),
):
    result = await engine.list_tickets(
        current_user,
        status=status,
        overdue=overdue,
        page=page,
        page_size=page_size,
    )
    return FeedbackListResponse(
        items=[FeedbackResponse.from_ticket(t) for t in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
    )


@router.get("/{ticket_id}", response_model=FeedbackResponse, summary="Get a ticket")
async def get_feedback(
    ticket_id: str,
    current_user: CurrentUserDep,
    engine: LifecycleEngineDep,
):
    try:
        ticket = await engine.get_ticket(current_user, ticket_id)
    except LifecycleError as e:
        raise to_http_exception(e) from e
    return FeedbackResponse.from_ticket(ticket)


# =============================================================================
# TRANSITIONS
# =============================================================================


@router.post("/assign", response_model=FeedbackResponse, summary="Assign a ticket to a team")
async def assign_feedback(
    request: AssignToTeamRequest,
    current_user: CurrentUserDep,
    engine: LifecycleEngineDep,
):
    """Triage a submitted ticket. Starts the SLA clock."""
    try:
        ticket = await engine.assign_to_team(
            current_user,
            request.ticket_id,
            AssignToTeamInput(
                team_id=request.team_id,
                pod_id=request.pod_id,
                priority=request.priority,
                kpi_category=request.kpi_category,
                sla_hours=request.sla_hours,
            ),
        )
    except LifecycleError as e:
        raise to_http_exception(e) from e
    return FeedbackResponse.from_ticket(ticket)


@router.post(
    "/bulk-assign",
    response_model=BulkAssignResponse,
    summary="Assign several tickets to a team",
    description="""
    Best effort: each ticket succeeds or fails on its own. A missing ticket or
    one that is no longer `submitted` is reported in `results` rather than
    failing the request.
    """,
)
async def bulk_assign_feedback(
    request: BulkAssignRequest,
    current_user: CurrentUserDep,
    engine: LifecycleEngineDep,
):
    try:
        result = await engine.bulk_assign_to_team(
            current_user,
            request.ticket_ids,
            AssignToTeamInput(
                team_id=request.team_id,
                pod_id=request.pod_id,
                priority=request.priority,
                kpi_category=request.kpi_category,
                sla_hours=request.sla_hours,
            ),
        )
    except LifecycleError as e:
        raise to_http_exception(e) from e

    return BulkAssignResponse(
        assigned=result.assigned,
        failed=result.failed,
        results=[
            BulkAssignItemResponse(
                ticket_id=item.ticket_id,
                success=item.success,
                error=item.error,
            )
            for item in result.results
        ],
    )


@router.post(
    "/assign-member",
    response_model=FeedbackResponse,
    summary="Delegate a ticket to a team member",
)
async def assign_member(
    request: AssignToMemberRequest,
    current_user: CurrentUserDep,
    engine: LifecycleEngineDep,
):
    try:
        ticket = await engine.assign_to_member(
            current_user,
            request.ticket_id,
            AssignToMemberInput(
                member_id=request.member_id,
                target_resolution_date=request.target_resolution_date,
            ),
        )
    except LifecycleError as e:
        raise to_http_exception(e) from e
    return FeedbackResponse.from_ticket(ticket)


@router.post(
    "/update-status",
    response_model=FeedbackResponse,
    summary="Update ticket status",
    description="""
    Move a ticket to `in_progress`, or submit a resolution with status
    `resolved` / `no_issue_found`. A resolution needs `resolution_text` and
    goes to the team lead for approval.
    """,
)
async def update_status(
    request: UpdateStatusRequest,
    current_user: CurrentUserDep,
    engine: LifecycleEngineDep,
):
    try:
        ticket = await engine.update_status(
            current_user,
            request.ticket_id,
            UpdateStatusInput(
                status=TicketStatus(request.status),
                resolution_text=request.resolution_text,
                preventive_measures=request.preventive_measures,
                member_comments=request.member_comments,
                days_taken=request.days_taken,
            ),
        )
    except LifecycleError as e:
        raise to_http_exception(e) from e
    return FeedbackResponse.from_ticket(ticket)


@router.post(
    "/approve-resolution",
    response_model=FeedbackResponse,
    summary="Approve or reject a resolution",
)
async def approve_resolution(
    request: ApproveResolutionRequest,
    current_user: CurrentUserDep,
    engine: LifecycleEngineDep,
):
    """Approval completes the ticket; rejection returns it to pending."""
    try:
        ticket = await engine.approve_resolution(
            current_user,
            request.ticket_id,
            ApproveResolutionInput(
                approved=request.approved,
                lead_comments=request.lead_comments,
                reassign_to=request.reassign_to,
            ),
        )
    except LifecycleError as e:
        raise to_http_exception(e) from e
    return FeedbackResponse.from_ticket(ticket)


@router.post(
    "/ai-suggestions",
    response_model=SuggestionsResponse,
    summary="Suggest a resolution",
)
async def ai_suggestions(
    request: SuggestionsRequest,
    current_user: CurrentUserDep,
    engine: LifecycleEngineDep,
):
    try:
        suggestions = await engine.generate_suggestions(
            current_user,
            request.ticket_id,
            issue_description=request.issue_description,
        )
    except LifecycleError as e:
        raise to_http_exception(e) from e
    return SuggestionsResponse(**suggestions)

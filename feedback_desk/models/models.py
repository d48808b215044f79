"""SQLAlchemy ORM Models for Feedback Desk.

Tables: users, teams, pods, feedback, form_templates, notifications, audit_log.
"""

from datetime import datetime
from enum import Enum as PyEnum
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, JSONType, TimestampMixin, UUIDMixin


# =============================================================================
# ENUMS
# =============================================================================


class UserRole(str, PyEnum):
    STUDENT = "student"
    AUDITOR = "auditor"
    TEAM_LEAD = "team_lead"
    TEAM_MEMBER = "team_member"
    ADMIN = "admin"
    CO_ADMIN = "co_admin"


class TicketStatus(str, PyEnum):
    SUBMITTED = "submitted"
    ASSIGNED = "assigned"  # Triaged to a team, SLA clock running
    PENDING = "pending"  # Delegated to a member (or bounced back by the lead)
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    NO_ISSUE_FOUND = "no_issue_found"
    COMPLETED = "completed"


class TicketPriority(str, PyEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ApprovalStatus(str, PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AuditAction(str, PyEnum):
    FEEDBACK_SUBMITTED = "feedback_submitted"
    FEEDBACK_ASSIGNED = "feedback_assigned"
    FEEDBACK_BULK_ASSIGNED = "feedback_bulk_assigned"
    FEEDBACK_ASSIGNED_TO_MEMBER = "feedback_assigned_to_member"
    FEEDBACK_STATUS_UPDATED = "feedback_status_updated"
    RESOLUTION_APPROVED = "resolution_approved"
    RESOLUTION_REJECTED = "resolution_rejected"
    AI_SUGGESTIONS_REQUESTED = "ai_suggestions_requested"
    BROADCAST_NOTIFICATION_SENT = "broadcast_notification_sent"


class NotificationType(str, PyEnum):
    FEEDBACK_SUBMITTED = "feedback_submitted"
    FEEDBACK_ASSIGNED = "feedback_assigned"
    RESOLUTION_SUBMITTED = "resolution_submitted"
    RESOLUTION_APPROVED = "resolution_approved"
    RESOLUTION_REJECTED = "resolution_rejected"
    BROADCAST = "broadcast"


class NotificationPriority(str, PyEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


def _enum_values(enum_cls):
    return [e.value for e in enum_cls]


# =============================================================================
# DIRECTORY MODELS (read by the engine, owned by the identity provider)
# =============================================================================


class Team(Base, UUIDMixin):
    """Team that receives triaged tickets."""

    __tablename__ = "teams"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Identity-provider user id; not a foreign key so teams can exist before
    # their lead has signed in for the first time.
    lead_id: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), nullable=False
    )

    pods: Mapped[list["Pod"]] = relationship(back_populates="team")


class Pod(Base, UUIDMixin):
    """Sub-group of a team."""

    __tablename__ = "pods"

    team_id: Mapped[UUID] = mapped_column(ForeignKey("teams.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    lead_id: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), nullable=False
    )

    team: Mapped["Team"] = relationship(back_populates="pods")

    __table_args__ = (Index("idx_pods_team", "team_id"),)


class User(Base):
    """Directory user keyed by the identity provider's id."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role", values_callable=_enum_values),
        default=UserRole.STUDENT,
        nullable=False,
    )
    program: Mapped[str | None] = mapped_column(String(50))
    team_id: Mapped[UUID | None] = mapped_column(ForeignKey("teams.id"))
    pod_id: Mapped[UUID | None] = mapped_column(ForeignKey("pods.id"))
    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_users_role", "role"),
        Index("idx_users_team", "team_id"),
    )


# =============================================================================
# FORM TEMPLATES
# =============================================================================


class FormTemplate(Base, UUIDMixin, TimestampMixin):
    """Program-specific feedback form definition."""

    __tablename__ = "form_templates"

    program_type: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    # [{"name", "label", "type", "required", "options", "validation", "order"}]
    fields: Mapped[list] = mapped_column(JSONType, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(64))

    __table_args__ = (
        Index("idx_form_templates_program", "program_type", "is_active"),
    )


# =============================================================================
# FEEDBACK TICKET (Core)
# =============================================================================


class Feedback(Base, UUIDMixin, TimestampMixin):
    """A feedback ticket.

    Mutated only through LifecycleEngine transitions; never hard-deleted.
    """

    __tablename__ = "feedback"

    ticket_id: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)
    student_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    program: Mapped[str | None] = mapped_column(String(50))
    form_data: Mapped[dict] = mapped_column(JSONType, default=dict)

    # Workflow
    status: Mapped[TicketStatus] = mapped_column(
        Enum(TicketStatus, name="ticket_status", values_callable=_enum_values),
        default=TicketStatus.SUBMITTED,
        nullable=False,
    )
    priority: Mapped[TicketPriority] = mapped_column(
        Enum(TicketPriority, name="ticket_priority", values_callable=_enum_values),
        default=TicketPriority.MEDIUM,
        nullable=False,
    )
    kpi_category: Mapped[str | None] = mapped_column(String(100))
    sla_hours: Mapped[int | None] = mapped_column(Integer)
    assigned_team_id: Mapped[UUID | None] = mapped_column(ForeignKey("teams.id"))
    assigned_pod_id: Mapped[UUID | None] = mapped_column(ForeignKey("pods.id"))
    assigned_member_id: Mapped[str | None] = mapped_column(ForeignKey("users.id"))
    auditor_id: Mapped[str | None] = mapped_column(ForeignKey("users.id"))
    target_resolution_date: Mapped[datetime | None] = mapped_column()

    # Resolution
    resolution_text: Mapped[str | None] = mapped_column(Text)
    preventive_measures: Mapped[str | None] = mapped_column(Text)
    member_comments: Mapped[str | None] = mapped_column(Text)
    days_taken: Mapped[int | None] = mapped_column(Integer)
    actual_resolution_date: Mapped[datetime | None] = mapped_column()

    # Approval
    lead_approval_status: Mapped[ApprovalStatus | None] = mapped_column(
        Enum(ApprovalStatus, name="approval_status", values_callable=_enum_values),
        nullable=True,
    )
    lead_comments: Mapped[str | None] = mapped_column(Text)

    ai_suggestions: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    # Timestamps
    submitted_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), nullable=False
    )
    assigned_at: Mapped[datetime | None] = mapped_column()
    sla_deadline: Mapped[datetime | None] = mapped_column(
        comment="assigned_at + sla_hours; written once at triage"
    )
    completed_at: Mapped[datetime | None] = mapped_column()

    __table_args__ = (
        CheckConstraint(
            "(status = 'submitted') = (sla_deadline IS NULL)",
            name="sla_deadline_iff_assigned",
        ),
        Index("idx_feedback_status", "status"),
        Index("idx_feedback_student", "student_id"),
        Index("idx_feedback_team_status", "assigned_team_id", "status"),
        Index("idx_feedback_member", "assigned_member_id"),
        Index("idx_feedback_sla_deadline", "sla_deadline"),
    )


# =============================================================================
# SIDE-EFFECT MODELS
# =============================================================================


class Notification(Base, UUIDMixin):
    """Per-recipient message. Only the recipient flips read state."""

    __tablename__ = "notifications"

    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType, name="notification_type", values_callable=_enum_values),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[NotificationPriority] = mapped_column(
        Enum(
            NotificationPriority,
            name="notification_priority",
            values_callable=_enum_values,
        ),
        default=NotificationPriority.MEDIUM,
        nullable=False,
    )
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column()
    feedback_id: Mapped[str | None] = mapped_column(
        ForeignKey("feedback.ticket_id"), nullable=True
    )
    details: Mapped[dict] = mapped_column(JSONType, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_notifications_user", "user_id", "created_at"),
        Index("idx_notifications_unread", "user_id", "read"),
    )


class AuditLog(Base, UUIDMixin):
    """Append-only audit trail."""

    __tablename__ = "audit_log"

    # Plain string: entries outlive the directory rows they mention
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_role: Mapped[str] = mapped_column(String(32), nullable=False)
    action: Mapped[AuditAction] = mapped_column(
        Enum(AuditAction, name="audit_action", values_callable=_enum_values),
        nullable=False,
    )
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    details: Mapped[dict] = mapped_column(JSONType, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_audit_log_time", "created_at"),
        Index("idx_audit_log_user", "user_id", "created_at"),
        Index("idx_audit_log_entity", "entity_type", "entity_id"),
        Index("idx_audit_log_action", "action", "created_at"),
    )

"""SLA deadline policy.

The deadline is computed once, when an auditor assigns a ticket to a team.
Member reassignment and rejection loops never move it. "Overdue" is evaluated
at read time and never stored.
"""

from datetime import datetime, timedelta, timezone

from ..models import Feedback, TicketStatus
from .errors import ValidationError

# Statuses that stop the SLA clock
CLOSED_STATUSES = frozenset({TicketStatus.COMPLETED})


def compute_sla_deadline(assigned_at: datetime, sla_hours: int) -> datetime:
    """Return assigned_at + sla_hours."""
    return assigned_at + timedelta(hours=sla_hours)


def validate_sla_hours(sla_hours: int | None, max_hours: int) -> int:
    """Reject missing, non-positive or out-of-policy SLA windows."""
    if sla_hours is None or sla_hours <= 0:
        raise ValidationError(
            "slaHours must be a positive number of hours",
            fields={"sla_hours": "must be > 0"},
        )
    if sla_hours > max_hours:
        raise ValidationError(
            f"slaHours may not exceed {max_hours}",
            fields={"sla_hours": f"must be <= {max_hours}"},
        )
    return sla_hours


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_overdue(ticket: Feedback, now: datetime | None = None) -> bool:
    """True when the SLA deadline has passed and the ticket is still open."""
    if ticket.sla_deadline is None:
        return False
    if ticket.status in CLOSED_STATUSES:
        return False
    now = now or datetime.now(timezone.utc)
    return _as_utc(ticket.sla_deadline) < _as_utc(now)


def hours_remaining(ticket: Feedback, now: datetime | None = None) -> float | None:
    """Hours until the deadline (negative once overdue); None if unassigned."""
    if ticket.sla_deadline is None:
        return None
    now = now or datetime.now(timezone.utc)
    delta = _as_utc(ticket.sla_deadline) - _as_utc(now)
    return round(delta.total_seconds() / 3600, 2)

"""Tests for SLA computation, the overdue predicate and ticket id generation."""

from datetime import datetime, timedelta, timezone

import pytest

from feedback_desk.models import Feedback, TicketStatus
from feedback_desk.services.errors import ValidationError
from feedback_desk.services.sla import (
    compute_sla_deadline,
    hours_remaining,
    is_overdue,
    validate_sla_hours,
)
from feedback_desk.services.ticket_ids import generate_ticket_id, is_valid_ticket_id

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _ticket(status: TicketStatus, deadline: datetime | None) -> Feedback:
    return Feedback(ticket_id="FB-1772442000000-AB12", status=status, sla_deadline=deadline)


class TestSlaDeadline:
    def test_deadline_is_assigned_at_plus_hours(self):
        assert compute_sla_deadline(NOW, 24) == NOW + timedelta(hours=24)

    @pytest.mark.parametrize("hours", [None, 0, -5])
    def test_rejects_non_positive(self, hours):
        with pytest.raises(ValidationError) as exc_info:
            validate_sla_hours(hours, max_hours=720)
        assert "sla_hours" in exc_info.value.fields

    def test_rejects_above_policy_maximum(self):
        with pytest.raises(ValidationError):
            validate_sla_hours(721, max_hours=720)

    def test_accepts_boundary(self):
        assert validate_sla_hours(720, max_hours=720) == 720


class TestOverdue:
    def test_unassigned_ticket_is_never_overdue(self):
        assert not is_overdue(_ticket(TicketStatus.SUBMITTED, None), NOW)
        assert hours_remaining(_ticket(TicketStatus.SUBMITTED, None), NOW) is None

    def test_open_ticket_past_deadline_is_overdue(self):
        ticket = _ticket(TicketStatus.IN_PROGRESS, NOW - timedelta(minutes=1))
        assert is_overdue(ticket, NOW)
        assert hours_remaining(ticket, NOW) < 0

    def test_deadline_not_yet_reached(self):
        ticket = _ticket(TicketStatus.PENDING, NOW + timedelta(hours=2))
        assert not is_overdue(ticket, NOW)
        assert hours_remaining(ticket, NOW) == 2.0

    def test_deadline_exactly_now_is_not_overdue(self):
        assert not is_overdue(_ticket(TicketStatus.PENDING, NOW), NOW)

    def test_completed_ticket_is_never_overdue(self):
        ticket = _ticket(TicketStatus.COMPLETED, NOW - timedelta(days=3))
        assert not is_overdue(ticket, NOW)

    def test_awaiting_approval_still_counts(self):
        """Resolved but unapproved tickets keep the clock running."""
        ticket = _ticket(TicketStatus.RESOLVED, NOW - timedelta(hours=1))
        assert is_overdue(ticket, NOW)

    def test_naive_deadline_treated_as_utc(self):
        """SQLite returns naive datetimes."""
        naive = (NOW - timedelta(hours=1)).replace(tzinfo=None)
        assert is_overdue(_ticket(TicketStatus.PENDING, naive), NOW)


class TestTicketIds:
    def test_format(self):
        ticket_id = generate_ticket_id(NOW)
        prefix, millis, suffix = ticket_id.split("-")

        assert prefix == "FB"
        assert int(millis) == int(NOW.timestamp() * 1000)
        assert len(suffix) == 4
        assert suffix.isupper() or suffix.isdigit()
        assert is_valid_ticket_id(ticket_id)

    def test_suffix_varies(self):
        ids = {generate_ticket_id(NOW) for _ in range(50)}
        assert len(ids) > 1

    @pytest.mark.parametrize(
        "value",
        ["FB-123-ABCD", "fb-1772442000000-ABCD", "FB-1772442000000-abcd", "FB-1772442000000-ABC"],
    )
    def test_rejects_malformed(self, value: str):
        assert not is_valid_ticket_id(value)
